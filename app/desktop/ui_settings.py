"""
Settings and Diagnostics UI panels for ChannelTranscriber.
"""

import tkinter as tk
from tkinter import ttk, filedialog
from pathlib import Path

from app.core.constants import APP_VERSION, StorageKey
from app.core.credentials import get_credential, set_credential, mask_secret
from app.core.diagnostics import get_diagnostics
from app.core.transcribe_gemini import verify_api_key


class CredentialField(ttk.LabelFrame):
    """Masked entry for one stored credential, with show/hide and save."""

    def __init__(self, parent, store, key: str, title: str, verify=None, **kwargs):
        super().__init__(parent, text=f"  {title}  ", padding=10, **kwargs)
        self.store = store
        self.key = key
        self.verify = verify
        self._show = False
        self._build()

    def _build(self):
        self.status_label = ttk.Label(self, text="")
        self.status_label.pack(anchor=tk.W, pady=(0, 6))

        entry_row = ttk.Frame(self)
        entry_row.pack(fill=tk.X)

        self._var = tk.StringVar(value=get_credential(self.store, self.key))
        self._entry = ttk.Entry(entry_row, textvariable=self._var, show="*", width=42)
        self._entry.pack(side=tk.LEFT, fill=tk.X, expand=True, padx=(0, 6))

        self._eye_btn = ttk.Button(entry_row, text="Show", width=5,
                                   command=self._toggle_visibility)
        self._eye_btn.pack(side=tk.LEFT, padx=(0, 6))

        self._save_btn = ttk.Button(entry_row, text="Save", command=self._save)
        self._save_btn.pack(side=tk.LEFT)

        self._msg_label = ttk.Label(self, text="", foreground="gray",
                                    font=("Helvetica", 10))
        self._msg_label.pack(anchor=tk.W, pady=(4, 0))
        self._refresh_status()

    def get(self) -> str:
        return self._var.get().strip()

    def _toggle_visibility(self):
        self._show = not self._show
        self._entry.configure(show="" if self._show else "*")
        self._eye_btn.configure(text="Hide" if self._show else "Show")

    def _save(self):
        value = self.get()
        if value and self.verify:
            self._save_btn.configure(state=tk.DISABLED)
            self._msg_label.configure(text="Verifying…", foreground="gray")
            self.update_idletasks()
            success, message = self.verify(value)
            self._save_btn.configure(state=tk.NORMAL)
            if success:
                self._msg_label.configure(text="Key verified and saved.", foreground="green")
            elif "Network error" in message:
                self._msg_label.configure(
                    text=f"Warning: {message}. Saved without verification.", foreground="orange")
            else:
                self._msg_label.configure(text=f"Invalid key: {message}", foreground="red")
                return
        else:
            self._msg_label.configure(text="Saved." if value else "Cleared.", foreground="green")

        set_credential(self.store, self.key, value)
        self._refresh_status()

    def _refresh_status(self):
        value = get_credential(self.store, self.key)
        if value:
            self.status_label.configure(text=f"Saved: {mask_secret(value)}", foreground="green")
        else:
            self.status_label.configure(text="Not set", foreground="orange")


class SettingsPanel(ttk.Frame):
    """Settings panel: credentials, output folder, scan and pipeline options."""

    def __init__(self, parent, config, store, on_config_changed=None, **kwargs):
        super().__init__(parent, **kwargs)
        self.config = config
        self.store = store
        self.on_config_changed = on_config_changed
        self._build()

    def _build(self):
        # ── Credentials ──
        self.apify_field = CredentialField(self, self.store, StorageKey.APIFY_TOKEN,
                                           "Apify API Token")
        self.apify_field.pack(fill=tk.X, padx=10, pady=5)

        self.gemini_field = CredentialField(self, self.store, StorageKey.GEMINI_API_KEY,
                                            "Google AI (Gemini) API Key",
                                            verify=verify_api_key)
        self.gemini_field.pack(fill=tk.X, padx=10, pady=5)

        # ── Output Root ──
        output_frame = ttk.LabelFrame(self, text="  Export Folder  ", padding=10)
        output_frame.pack(fill=tk.X, padx=10, pady=5)

        self.output_var = tk.StringVar(value=self.config.output_root)
        ttk.Label(output_frame, textvariable=self.output_var, wraplength=400).pack(
            side=tk.LEFT, fill=tk.X, expand=True)
        ttk.Button(output_frame, text="Change...",
                   command=self._change_output).pack(side=tk.RIGHT)

        # ── Transcription ──
        pipe_frame = ttk.LabelFrame(self, text="  Transcription  ", padding=10)
        pipe_frame.pack(fill=tk.X, padx=10, pady=5)

        self.language_var = tk.StringVar(value=self.config.get('transcript_language'))
        self.delay_var = tk.StringVar(value=str(self.config.get('api_call_delay_sec')))
        rows = [
            ("Transcript language:", self.language_var),
            ("Delay between calls (s):", self.delay_var),
        ]
        for i, (label, var) in enumerate(rows):
            ttk.Label(pipe_frame, text=label).grid(row=i, column=0, sticky=tk.W, pady=2)
            ttk.Entry(pipe_frame, textvariable=var, width=20).grid(
                row=i, column=1, sticky=tk.W, padx=(10, 0), pady=2)
        ttk.Button(pipe_frame, text="Apply", command=self._save_pipeline).grid(
            row=len(rows), column=1, sticky=tk.W, padx=(10, 0), pady=(6, 0))

        # ── App Version ──
        ttk.Label(self, text=f"Channel Transcriber v{APP_VERSION}",
                  foreground="gray").pack(pady=(10, 0))

    def _change_output(self):
        folder = filedialog.askdirectory(
            title="Select Export Folder",
            initialdir=self.config.output_root,
        )
        if folder:
            self.config.output_root = folder
            self.output_var.set(folder)
            self._notify()

    def _save_pipeline(self):
        self.config.set('transcript_language', self.language_var.get())
        self.config.set('api_call_delay_sec', self.delay_var.get())
        # show the coerced values
        self.language_var.set(self.config.get('transcript_language'))
        self.delay_var.set(str(self.config.get('api_call_delay_sec')))
        self._notify()

    def _notify(self):
        if self.on_config_changed:
            self.on_config_changed()


class DiagnosticsPanel(ttk.Frame):
    """Diagnostics panel showing storage and credential status."""

    def __init__(self, parent, store, db_path: Path | None = None, **kwargs):
        super().__init__(parent, **kwargs)
        self.store = store
        self.db_path = db_path
        self._build()

    def _build(self):
        frame = ttk.LabelFrame(self, text="  Diagnostics  ", padding=10)
        frame.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        self.info_labels = {}
        fields = [
            ("Python", "python_version"),
            ("requests", "requests_version"),
            ("Apify Token", "apify_token_set"),
            ("Gemini Key", "gemini_key_set"),
            ("Cached Transcripts", "cached_transcripts"),
            ("Database", "db_path"),
            ("Database Last Modified", "db_modified"),
        ]

        for i, (label, key) in enumerate(fields):
            ttk.Label(frame, text=f"{label}:", font=("Helvetica", 11, "bold")).grid(
                row=i, column=0, sticky=tk.W, padx=(0, 15), pady=3)
            val_label = ttk.Label(frame, text="...", wraplength=400)
            val_label.grid(row=i, column=1, sticky=tk.W, pady=3)
            self.info_labels[key] = val_label

        ttk.Button(frame, text="Refresh", command=self.refresh).grid(
            row=len(fields), column=0, columnspan=2, pady=(15, 0))

        self.after(100, self.refresh)

    def refresh(self):
        """Refresh diagnostic information."""
        diag = get_diagnostics(self.store, self.db_path)

        self.info_labels['python_version'].configure(text=diag['python_version'])
        self.info_labels['requests_version'].configure(text=diag['requests_version'])
        self.info_labels['apify_token_set'].configure(
            text="Set" if diag['apify_token_set'] else "Not set")
        self.info_labels['gemini_key_set'].configure(
            text="Set" if diag['gemini_key_set'] else "Not set")
        self.info_labels['cached_transcripts'].configure(text=str(diag['cached_transcripts']))

        db = diag['database']
        self.info_labels['db_path'].configure(
            text=db['path'] if db['detected'] else f"{db['path']} (missing)")
        self.info_labels['db_modified'].configure(text=db.get('last_modified') or 'N/A')
