#!/usr/bin/env python3
"""Setup script for Laundry Tag Printer"""

from setuptools import setup, find_packages

setup(
    name="laundry-tag-printer",
    version="1.0.0",
    description="Item tag and order barcode printing for laundry orders",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "Pillow>=10.1",
        "qrcode",
        "PyQt6",
        "brother-ql",
        "requests",
        "python-dotenv",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "tagprint=tagprint.cli:main",
        ],
        "gui_scripts": [
            "tagprint-gui=tagprint.tag_printer_gui:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Printing",
    ],
)
