"""
ChannelTranscriber — setuptools / py2app build script.

Usage:
    # Editable install for development and tests:
    pip install -e .

    # macOS app, alias mode (fast, links to source):
    python3 setup.py py2app -A

    # macOS app, standalone (fully self-contained):
    python3 setup.py py2app

The built app will be in the dist/ directory.
"""

import os
import sys
from setuptools import setup, find_namespace_packages

APP = ["main.py"]
APP_NAME = "ChannelTranscriber"
VERSION = "1.0.0"

DATA_FILES = []

# Check if .icns icon exists (user builds it on macOS)
ICON_FILE = "AppIcon.icns" if os.path.exists("AppIcon.icns") else None

PY2APP_OPTIONS = {
    "argv_emulation": False,  # Don't use argv emulation with tkinter
    "plist": {
        "CFBundleName": APP_NAME,
        "CFBundleDisplayName": "Channel Transcriber",
        "CFBundleIdentifier": "com.local.channeltranscriber",
        "CFBundleVersion": VERSION,
        "CFBundleShortVersionString": VERSION,
        "CFBundlePackageType": "APPL",
        "LSMinimumSystemVersion": "10.15",
        "NSHumanReadableCopyright": "Local use only",
        "LSUIElement": False,
        "NSHighResolutionCapable": True,
        "LSEnvironment": {
            "PYTHONDONTWRITEBYTECODE": "1",
        },
    },
    "packages": [
        "app",
        "app.core",
        "app.desktop",
        "tkinter",
        "requests",
    ],
    "includes": [
        "app.core.constants",
        "app.core.config",
        "app.core.db_sqlite",
        "app.core.models",
        "app.core.error_codes",
        "app.core.credentials",
        "app.core.transcript_cache",
        "app.core.url_parse",
        "app.core.matcher",
        "app.core.channel_scan",
        "app.core.fetch_audio",
        "app.core.transcribe_gemini",
        "app.core.pipeline",
        "app.core.output_writer",
        "app.core.diagnostics",
        "app.desktop.ui_main",
        "app.desktop.ui_components",
        "app.desktop.ui_settings",
        "sqlite3",
    ],
    "excludes": [
        "PyQt5", "PyQt6", "PySide2", "PySide6",
        "matplotlib", "numpy", "scipy", "pandas",
        "PIL", "cv2", "torch", "tensorflow",
        "pytest", "unittest",
    ],
    "site_packages": True,
}

# Add icon if available
if ICON_FILE:
    PY2APP_OPTIONS["iconfile"] = ICON_FILE

# py2app only exists on macOS; plain installs must not require it
extra = {}
if "py2app" in sys.argv:
    extra = {
        "app": APP,
        "data_files": DATA_FILES,
        "options": {"py2app": PY2APP_OPTIONS},
        "setup_requires": ["py2app"],
    }

setup(
    name=APP_NAME,
    version=VERSION,
    description="Scan a TikTok channel, match audio URLs and transcribe them with Gemini",
    packages=find_namespace_packages(include=["app", "app.*"]),
    py_modules=["main"],
    install_requires=[
        "requests>=2.28.0",
    ],
    python_requires=">=3.10",
    **extra,
)
