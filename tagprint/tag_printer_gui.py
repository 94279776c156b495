#!/usr/bin/env python3
"""
Desktop window for printing laundry item tags.

Load the tags of an order (from the API or a JSON export), pick the
ones to print, then download them as one PNG or print them. A second
tab looks up scanned codes and can print the tags of the scanned order.
"""

import sys
from pathlib import Path

from PyQt6.QtCore import QRectF, QSettings, Qt
from PyQt6.QtGui import QFont, QImage, QPainter, QPixmap
from PyQt6.QtPrintSupport import QPrintDialog, QPrinter
from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QLineEdit, QPushButton, QComboBox, QSpinBox, QGroupBox,
    QFileDialog, QMessageBox, QScrollArea, QTabWidget, QTableWidget,
    QTableWidgetItem, QHeaderView
)

from . import config
from .api_client import TagApiClient
from .cli import load_labels_json
from .exceptions import PrintDismissed, TagPrintError
from .logging_config import get_logger, setup_logging
from .scan import (ITEM_STATUSES, ItemScan, OrderScan, describe_scan, order_details_for_scan,
                   print_tags_for_scan, scan_code, update_item_status)
from .session import TagPrintSession
from .sheet import image_to_png_bytes, print_order_card

logger = get_logger(__name__)

# CSS pixels per inch, the unit tag sizes are designed in
SCREEN_DPI = 96


def pil_to_qimage(img) -> QImage:
    qimage = QImage()
    qimage.loadFromData(image_to_png_bytes(img), "PNG")
    return qimage


class QtPrintPipeline:
    """
    Print tiles through the system print dialog.

    Tiles flow left to right and wrap; a tile that does not fit on the
    rest of a page starts a new page instead of being split.
    """

    def __init__(self, parent=None, gap_px: int = 10):
        self.parent = parent
        self.gap_px = gap_px

    def print_document(self, document):
        printer = QPrinter(QPrinter.PrinterMode.HighResolution)
        printer.setDocName(document.title)
        dialog = QPrintDialog(printer, self.parent)
        if dialog.exec() != QPrintDialog.DialogCode.Accepted:
            logger.info("Print dialog dismissed")
            raise PrintDismissed()

        scale = printer.resolution() / SCREEN_DPI
        page = printer.pageRect(QPrinter.Unit.DevicePixel)
        gap = self.gap_px * scale

        painter = QPainter()
        if not painter.begin(printer):
            raise TagPrintError("Printer could not be opened")
        try:
            x, y, row_height = 0.0, 0.0, 0.0
            for tile in document.tiles:
                w, h = tile.width * scale, tile.height * scale
                if x > 0 and x + w > page.width():
                    x, y, row_height = 0.0, y + row_height + gap, 0.0
                if y > 0 and y + h > page.height():
                    printer.newPage()
                    x, y, row_height = 0.0, 0.0, 0.0
                painter.drawImage(QRectF(x, y, w, h), pil_to_qimage(tile))
                x += w + gap
                row_height = max(row_height, h)
        finally:
            painter.end()


class TagPrinterWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.settings = QSettings("LaundryTags", "TagPrinter")
        self.session = None
        self.order_number = ""
        self.scan_result = None
        self.api_url = config.API_BASE_URL
        self.init_ui()
        self.load_settings()
        self.update_actions()

    def init_ui(self):
        self.setWindowTitle("Item Tag Printer")
        self.setMinimumWidth(900)
        self.setMinimumHeight(700)

        main_widget = QWidget()
        self.setCentralWidget(main_widget)
        layout = QVBoxLayout(main_widget)

        self.tab_widget = QTabWidget()
        layout.addWidget(self.tab_widget)

        tags_tab = QWidget()
        self.init_tags_tab(tags_tab)
        self.tab_widget.addTab(tags_tab, "Item Tags")

        scan_tab = QWidget()
        self.init_scan_tab(scan_tab)
        self.tab_widget.addTab(scan_tab, "Scan")

        self.statusBar().showMessage("Ready")

    def init_tags_tab(self, parent):
        """Initialize the item tag tab"""
        layout = QVBoxLayout(parent)

        # Order section
        order_group = QGroupBox("Order")
        order_layout = QHBoxLayout()
        order_layout.addWidget(QLabel("Order ID:"))
        self.order_id_input = QLineEdit()
        self.order_id_input.setPlaceholderText("665f1c2e9b1d4a0012ab34cd")
        self.order_id_input.returnPressed.connect(self.load_tags)
        order_layout.addWidget(self.order_id_input)

        self.load_button = QPushButton("Load Tags")
        self.load_button.setToolTip("Fetch the item tags of this order")
        self.load_button.clicked.connect(self.load_tags)
        order_layout.addWidget(self.load_button)

        self.open_json_button = QPushButton("Open JSON...")
        self.open_json_button.setToolTip("Load tags from an exported labels file")
        self.open_json_button.clicked.connect(self.open_labels_file)
        order_layout.addWidget(self.open_json_button)
        order_group.setLayout(order_layout)
        layout.addWidget(order_group)

        # Controls
        controls_layout = QHBoxLayout()
        controls_layout.addWidget(QLabel("Size:"))
        self.size_combo = QComboBox()
        for preset in config.LABEL_SIZES.values():
            self.size_combo.addItem(preset.description, preset.name)
        self.size_combo.currentIndexChanged.connect(self.on_size_changed)
        controls_layout.addWidget(self.size_combo)

        controls_layout.addWidget(QLabel("Columns:"))
        self.columns_spin = QSpinBox()
        self.columns_spin.setRange(1, 6)
        self.columns_spin.setValue(config.DEFAULT_COLUMNS)
        self.columns_spin.setToolTip("Columns in the downloaded sheet")
        self.columns_spin.valueChanged.connect(self.on_columns_changed)
        controls_layout.addWidget(self.columns_spin)

        self.select_all_button = QPushButton("Select All")
        self.select_all_button.clicked.connect(self.select_all)
        controls_layout.addWidget(self.select_all_button)

        self.deselect_all_button = QPushButton("Deselect All")
        self.deselect_all_button.clicked.connect(self.deselect_all)
        controls_layout.addWidget(self.deselect_all_button)

        controls_layout.addStretch()
        self.selection_label = QLabel("0 of 0 selected")
        controls_layout.addWidget(self.selection_label)
        layout.addLayout(controls_layout)

        # Tag table
        self.tag_table = QTableWidget(0, 5)
        self.tag_table.setHorizontalHeaderLabels(["Tag Code", "Item", "Service", "Category", "#"])
        header = self.tag_table.horizontalHeader()
        for column in range(4):
            header.setSectionResizeMode(column, QHeaderView.ResizeMode.Stretch)
        header.setSectionResizeMode(4, QHeaderView.ResizeMode.ResizeToContents)
        self.tag_table.itemChanged.connect(self.on_tag_item_changed)
        self.tag_table.currentCellChanged.connect(self.on_current_tag_changed)
        layout.addWidget(self.tag_table, 1)

        # Preview
        preview_group = QGroupBox("Preview")
        preview_layout = QVBoxLayout()
        scroll_area = QScrollArea()
        scroll_area.setWidgetResizable(True)
        scroll_area.setMinimumHeight(240)
        self.preview_label = QLabel("Load an order to see its tags")
        self.preview_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.preview_label.setStyleSheet("QLabel { background-color: #f0f0f0; padding: 20px; }")
        scroll_area.setWidget(self.preview_label)
        preview_layout.addWidget(scroll_area)
        preview_group.setLayout(preview_layout)
        layout.addWidget(preview_group)

        # Actions
        action_layout = QHBoxLayout()
        action_layout.addStretch()
        self.download_button = QPushButton("Download")
        self.download_button.setToolTip("Save the selected tags as one PNG")
        self.download_button.clicked.connect(self.download_tags)
        action_layout.addWidget(self.download_button)

        self.print_button = QPushButton("Print Tags (0)")
        self.print_button.setFont(QFont("Sans", 11, QFont.Weight.Bold))
        self.print_button.clicked.connect(self.print_tags)
        action_layout.addWidget(self.print_button)
        layout.addLayout(action_layout)

    def init_scan_tab(self, parent):
        """Initialize the scan lookup tab"""
        layout = QVBoxLayout(parent)

        input_layout = QHBoxLayout()
        input_layout.addWidget(QLabel("Code:"))
        self.scan_input = QLineEdit()
        self.scan_input.setPlaceholderText("Scan or type an order barcode or tag code")
        self.scan_input.returnPressed.connect(self.run_scan)
        input_layout.addWidget(self.scan_input)
        self.scan_button = QPushButton("Look Up")
        self.scan_button.clicked.connect(self.run_scan)
        input_layout.addWidget(self.scan_button)
        layout.addLayout(input_layout)

        self.scan_result_label = QLabel("")
        self.scan_result_label.setAlignment(Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft)
        self.scan_result_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        layout.addWidget(self.scan_result_label, 1)

        status_group = QGroupBox("Update Item Status")
        status_layout = QHBoxLayout()
        self.status_buttons = {}
        for status in ITEM_STATUSES:
            button = QPushButton(status.replace("_", " ").title())
            button.clicked.connect(lambda checked, s=status: self.set_item_status(s))
            status_layout.addWidget(button)
            self.status_buttons[status] = button
        status_group.setLayout(status_layout)
        layout.addWidget(status_group)

        scan_actions = QHBoxLayout()
        self.order_card_button = QPushButton("Print Order Barcode")
        self.order_card_button.setToolTip("Print the scanned order's barcode card")
        self.order_card_button.clicked.connect(self.print_scanned_order_card)
        scan_actions.addWidget(self.order_card_button)

        self.scan_print_button = QPushButton("Print Item Tags")
        self.scan_print_button.clicked.connect(self.print_scanned_order)
        scan_actions.addWidget(self.scan_print_button)
        layout.addLayout(scan_actions)

        self.update_scan_actions()

    def load_settings(self):
        """Load persistent settings"""
        self.api_url = self.settings.value("api_url", config.API_BASE_URL)
        size = self.settings.value("label_size", config.DEFAULT_LABEL_SIZE)
        columns = self.settings.value("columns", config.DEFAULT_COLUMNS, type=int)
        # Change handlers save every setting; keep them quiet until all are applied
        widgets = (self.size_combo, self.columns_spin)
        for widget in widgets:
            widget.blockSignals(True)
        try:
            index = self.size_combo.findData(size)
            if index >= 0:
                self.size_combo.setCurrentIndex(index)
            self.columns_spin.setValue(columns)
        finally:
            for widget in widgets:
                widget.blockSignals(False)

    def save_settings(self):
        """Save persistent settings"""
        self.settings.setValue("label_size", self.size_combo.currentData())
        self.settings.setValue("columns", self.columns_spin.value())
        self.settings.setValue("api_url", self.api_url)

    def make_client(self) -> TagApiClient:
        return TagApiClient(self.api_url)

    def set_labels(self, labels):
        """Start a new session over ``labels``, all selected"""
        if self.session is not None:
            self.session.cancel()
        self.session = TagPrintSession(labels, size=self.size_combo.currentData(),
                                       columns=self.columns_spin.value())
        self.order_number = labels[0].order_number if labels else ""

        self.tag_table.blockSignals(True)
        self.tag_table.setRowCount(0)
        for row, label in enumerate(labels):
            self.tag_table.insertRow(row)
            code_item = QTableWidgetItem(label.tag_code)
            code_item.setFlags(Qt.ItemFlag.ItemIsUserCheckable | Qt.ItemFlag.ItemIsEnabled
                               | Qt.ItemFlag.ItemIsSelectable)
            code_item.setCheckState(Qt.CheckState.Checked)
            self.tag_table.setItem(row, 0, code_item)
            for column, text in enumerate(
                    [label.item_type, label.service, label.category, label.position], start=1):
                item = QTableWidgetItem(text)
                item.setFlags(Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable)
                self.tag_table.setItem(row, column, item)
        self.tag_table.blockSignals(False)

        if labels:
            self.tag_table.setCurrentCell(0, 0)
            self.show_preview(0)
        else:
            self.preview_label.setPixmap(QPixmap())
            self.preview_label.setText("No items found for this order")
        self.update_actions()

    def load_tags(self):
        order_id = self.order_id_input.text().strip()
        if not order_id:
            QMessageBox.warning(self, "Missing Input", "Please enter an order ID.")
            return
        try:
            self.statusBar().showMessage("Loading tags...")
            labels = self.make_client().fetch_labels(order_id)
        except TagPrintError as e:
            QMessageBox.critical(self, "Load Error", f"Failed to fetch labels:\n{e.message}")
            self.statusBar().showMessage("Loading failed")
            return
        self.set_labels(labels)
        self.statusBar().showMessage(f"Loaded {len(labels)} tag(s) for order {self.order_number}")

    def open_labels_file(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Labels", "", "JSON Files (*.json);;All Files (*)")
        if not path:
            return
        try:
            labels = load_labels_json(path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Open Error", f"Could not read labels:\n{e}")
            return
        self.set_labels(labels)
        self.statusBar().showMessage(f"Loaded {len(labels)} tag(s) from {Path(path).name}")

    def on_tag_item_changed(self, item):
        if self.session is None or item.column() != 0:
            return
        self.session.sheet.set_selected(item.row(), item.checkState() == Qt.CheckState.Checked)
        self.update_actions()

    def on_current_tag_changed(self, row, column, previous_row, previous_column):
        if row >= 0 and row != previous_row:
            self.show_preview(row)

    def on_size_changed(self):
        if self.session is not None:
            self.session.set_size(self.size_combo.currentData())
            row = self.tag_table.currentRow()
            if row >= 0:
                self.show_preview(row)
        self.save_settings()

    def on_columns_changed(self, value):
        if self.session is not None:
            self.session.sheet.columns = value
        self.save_settings()

    def set_all_checked(self, checked: bool):
        if self.session is None:
            return
        state = Qt.CheckState.Checked if checked else Qt.CheckState.Unchecked
        self.tag_table.blockSignals(True)
        for row in range(self.tag_table.rowCount()):
            self.tag_table.item(row, 0).setCheckState(state)
        self.tag_table.blockSignals(False)
        if checked:
            self.session.sheet.select_all()
        else:
            self.session.sheet.deselect_all()
        self.update_actions()

    def select_all(self):
        self.set_all_checked(True)

    def deselect_all(self):
        self.set_all_checked(False)

    def update_actions(self):
        """Enable download/print only when tags are selected"""
        if self.session is None:
            selected, summary = 0, "0 of 0 selected"
        else:
            selected, summary = len(self.session.sheet.selected), self.session.sheet.summary
        self.selection_label.setText(summary)
        self.download_button.setEnabled(selected > 0)
        self.print_button.setEnabled(selected > 0)
        self.print_button.setText(f"Print Tags ({selected})")

    def show_preview(self, row: int):
        try:
            img = self.session.preview(row)
        except TagPrintError as e:
            self.preview_label.setPixmap(QPixmap())
            self.preview_label.setText(f"Preview failed: {e.message}")
            return
        self.preview_label.setPixmap(QPixmap.fromImage(pil_to_qimage(img)))
        self.preview_label.setScaledContents(False)

    def report_batch(self, batch, verb: str):
        summary = batch.summary(verb)
        self.statusBar().showMessage(summary)
        if batch.failures:
            details = "\n".join(str(failure) for failure in batch.failures)
            QMessageBox.warning(self, "Some Tags Failed", f"{summary}\n\n{details}")
        elif batch.missing_matrix:
            QMessageBox.information(
                self, "QR Codes Missing",
                f"{summary}\n\n{len(batch.missing_matrix)} tag(s) were produced without a QR code."
            )

    def download_tags(self):
        if self.session is None or self.session.sheet.is_empty:
            return
        directory = QFileDialog.getExistingDirectory(
            self, "Save Tags To", self.settings.value("download_dir", str(Path.home())))
        if not directory:
            return
        self.settings.setValue("download_dir", directory)
        try:
            self.statusBar().showMessage("Generating tags...")
            result = self.session.download(directory)
        except (TagPrintError, OSError) as e:
            QMessageBox.critical(self, "Download Error", f"Failed to save tags:\n{e}")
            self.statusBar().showMessage("Download failed")
            return
        self.report_batch(result.batch, "saved")
        if result.path:
            self.statusBar().showMessage(f"Saved {result.path} ({result.batch.summary('saved')})")

    def print_tags(self):
        if self.session is None or self.session.sheet.is_empty:
            return
        try:
            self.statusBar().showMessage("Generating tags...")
            batch = self.session.print(QtPrintPipeline(self))
        except PrintDismissed:
            self.statusBar().showMessage("Print cancelled")
            return
        except TagPrintError as e:
            QMessageBox.critical(self, "Print Error", f"Failed to print tags:\n{e.message}")
            self.statusBar().showMessage("Print failed")
            return
        self.report_batch(batch, "printed")

    def update_scan_actions(self):
        is_item = isinstance(self.scan_result, ItemScan)
        for status, button in self.status_buttons.items():
            button.setEnabled(is_item and self.scan_result.item.processing_status != status)
        self.scan_print_button.setEnabled(self.scan_result is not None)
        self.order_card_button.setEnabled(isinstance(self.scan_result, OrderScan))
        if self.scan_result is not None and not is_item:
            self.scan_print_button.setText(f"Print Item Tags ({len(self.scan_result.items)} items)")
        else:
            self.scan_print_button.setText("Print Item Tags")

    def show_scan_result(self, result):
        self.scan_result = result
        self.scan_result_label.setText("\n".join(describe_scan(result)))
        self.update_scan_actions()

    def run_scan(self):
        code = self.scan_input.text().strip()
        if not code:
            return
        try:
            self.statusBar().showMessage("Looking up...")
            result = scan_code(self.make_client(), code)
        except (TagPrintError, ValueError) as e:
            self.scan_result = None
            self.scan_result_label.setText(f"Not found: {e}")
            self.update_scan_actions()
            self.statusBar().showMessage("Lookup failed")
            return
        self.show_scan_result(result)
        self.statusBar().showMessage("Ready")

    def set_item_status(self, status: str):
        if not isinstance(self.scan_result, ItemScan):
            return
        try:
            result = update_item_status(self.make_client(), self.scan_result.item.tag_code, status)
        except (TagPrintError, ValueError) as e:
            QMessageBox.critical(self, "Update Error", f"Failed to update status:\n{e}")
            return
        self.show_scan_result(result)
        self.statusBar().showMessage(f"Status set to {status.replace('_', ' ')}")

    def print_scanned_order(self):
        """Print every tag of the scanned order"""
        if self.scan_result is None:
            return
        try:
            self.statusBar().showMessage("Generating tags...")
            batch = print_tags_for_scan(self.make_client(), self.scan_result,
                                        QtPrintPipeline(self), size=self.size_combo.currentData())
        except PrintDismissed:
            self.statusBar().showMessage("Print cancelled")
            return
        except (TagPrintError, ValueError) as e:
            QMessageBox.critical(self, "Print Error", f"Failed to print tags:\n{e}")
            self.statusBar().showMessage("Print failed")
            return
        if batch is None:
            QMessageBox.information(self, "No Items", "No items found for this order.")
            return
        self.report_batch(batch, "printed")

    def print_scanned_order_card(self):
        """Print the barcode card of the scanned order with its details"""
        if not isinstance(self.scan_result, OrderScan):
            return
        result = self.scan_result
        try:
            document = print_order_card(result.order_number, QtPrintPipeline(self),
                                        order_details_for_scan(result))
        except PrintDismissed:
            self.statusBar().showMessage("Print cancelled")
            return
        except (TagPrintError, ValueError) as e:
            QMessageBox.critical(self, "Print Error", f"Failed to print order barcode:\n{e}")
            self.statusBar().showMessage("Print failed")
            return
        self.statusBar().showMessage(f"Printed {document.title}")

    def closeEvent(self, event):
        if self.session is not None:
            self.session.cancel()
        self.save_settings()
        super().closeEvent(event)


def main():
    setup_logging(config.LOG_LEVEL, log_dir=config.LOG_DIR, enable_file_logging=bool(config.LOG_DIR))

    app = QApplication(sys.argv)
    app.setApplicationName("Item Tag Printer")

    window = TagPrinterWindow()
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
