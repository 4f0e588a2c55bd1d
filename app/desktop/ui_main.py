"""
Main application window for ChannelTranscriber.
Built with tkinter — no external UI dependencies.
Three steps: scan a channel, match audio URLs, transcribe and export.
"""

import sys
import logging
import threading
import tkinter as tk
from tkinter import ttk, filedialog, messagebox
from pathlib import Path

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.constants import (
    APP_DISPLAY_NAME, APP_VERSION, APP_SUPPORT_DIR, LOG_DIR, StorageKey, EventKind,
)
from app.core.config import AppConfig
from app.core.db_sqlite import Database
from app.core.credentials import get_credential
from app.core.transcript_cache import TranscriptCache
from app.core.pipeline import TranscriptionPipeline, build_work_set
from app.core.channel_scan import fetch_channel_videos
from app.core.matcher import match_urls
from app.core.url_parse import parse_input_lines, parse_input_file
from app.core.output_writer import write_results_csv
from app.core.error_codes import PipelineError
from app.core.models import VideoRecord, PipelineEvent
from app.desktop.ui_components import UrlListInput, VideoTable, TranscriptsList
from app.desktop.ui_settings import SettingsPanel, DiagnosticsPanel

logger = logging.getLogger(__name__)


class MainWindow:
    """Main application window."""

    def __init__(self):
        self.root = tk.Tk()
        self.root.title(f"{APP_DISPLAY_NAME} v{APP_VERSION}")
        self.root.geometry("900x720")
        self.root.minsize(760, 560)

        # Session state
        self.videos: list[VideoRecord] = []
        self.audio_map: dict[str, str] = {}
        self._scanning = False
        self._closing = False

        self._init_backend()
        self._build_ui()

        # Closing the window must stop any run before the store goes away
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _init_backend(self):
        """Initialize config, store, cache and pipeline."""
        APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)

        self.config = AppConfig()
        self.db = Database()
        self.cache = TranscriptCache(self.db)
        self.pipeline = TranscriptionPipeline(self.cache, self.config.as_dict())
        self.pipeline.on_event = self._on_pipeline_event_callback

    def _build_ui(self):
        style = ttk.Style()
        try:
            style.theme_use('aqua')  # macOS native look
        except tk.TclError:
            try:
                style.theme_use('clam')
            except tk.TclError:
                pass

        self.notebook = ttk.Notebook(self.root)
        self.notebook.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)

        self.scan_tab = ttk.Frame(self.notebook)
        self.match_tab = ttk.Frame(self.notebook)
        self.results_tab = ttk.Frame(self.notebook)
        self.notebook.add(self.scan_tab, text="  1. Scan  ")
        self.notebook.add(self.match_tab, text="  2. Match  ")
        self.notebook.add(self.results_tab, text="  3. Transcribe  ")

        self._build_scan_tab(self.scan_tab)
        self._build_match_tab(self.match_tab)
        self._build_results_tab(self.results_tab)
        self.notebook.bind("<<NotebookTabChanged>>", self._on_tab_changed)

        settings_tab = ttk.Frame(self.notebook)
        self.notebook.add(settings_tab, text="  Settings  ")
        self.settings_panel = SettingsPanel(
            settings_tab, self.config, self.db,
            on_config_changed=self._on_config_changed,
        )
        self.settings_panel.pack(fill=tk.BOTH, expand=True)

        diag_tab = ttk.Frame(self.notebook)
        self.notebook.add(diag_tab, text="  Diagnostics  ")
        self.diag_panel = DiagnosticsPanel(diag_tab, self.db, self.db.db_path)
        self.diag_panel.pack(fill=tk.BOTH, expand=True)

        self.status_var = tk.StringVar(value="Ready.")
        status_bar = ttk.Label(self.root, textvariable=self.status_var,
                               relief=tk.SUNKEN, anchor=tk.W)
        status_bar.pack(side=tk.BOTTOM, fill=tk.X, padx=5, pady=(0, 5))

    # ── Step 1: Scan ──────────────────────────────────────────────────

    def _build_scan_tab(self, tab):
        form = ttk.LabelFrame(tab, text="  Scan TikTok Channel  ", padding=10)
        form.pack(fill=tk.X, padx=10, pady=(10, 5))

        ttk.Label(form, text="Channel URL:").grid(row=0, column=0, sticky=tk.W)
        self.channel_var = tk.StringVar()
        ttk.Entry(form, textvariable=self.channel_var, width=50).grid(
            row=0, column=1, sticky=tk.EW, padx=(10, 0))

        ttk.Label(form, text="Max videos:").grid(row=1, column=0, sticky=tk.W, pady=(6, 0))
        self.limit_var = tk.StringVar(value=str(self.config.results_limit))
        ttk.Spinbox(form, from_=1, to=1000, textvariable=self.limit_var, width=8).grid(
            row=1, column=1, sticky=tk.W, padx=(10, 0), pady=(6, 0))

        self.scan_btn = ttk.Button(form, text="Scan", command=self._on_scan)
        self.scan_btn.grid(row=0, column=2, rowspan=2, padx=(10, 0))
        form.columnconfigure(1, weight=1)

        self.video_table = VideoTable(tab)
        self.video_table.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        btn_frame = ttk.Frame(tab)
        btn_frame.pack(fill=tk.X, padx=10, pady=(0, 10))
        ttk.Button(btn_frame, text="Copy Video URLs",
                   command=self._on_copy_urls).pack(side=tk.LEFT)
        self.to_match_btn = ttk.Button(btn_frame, text="Continue to Matching",
                                       command=self._go_to_match, state=tk.DISABLED)
        self.to_match_btn.pack(side=tk.RIGHT)

    def _on_scan(self):
        if self._scanning:
            return
        token = get_credential(self.db, StorageKey.APIFY_TOKEN)
        channel = self.channel_var.get().strip()
        self.config.results_limit = self.limit_var.get()
        limit = self.config.results_limit

        self._scanning = True
        self.scan_btn.configure(state=tk.DISABLED)
        self.status_var.set("Scanning TikTok channel...")
        self.videos = []
        self.video_table.update_videos([])

        threading.Thread(target=self._scan_worker, args=(token, channel, limit),
                         daemon=True).start()

    def _scan_worker(self, token: str, channel: str, limit: int):
        try:
            videos = fetch_channel_videos(token, channel, limit)
        except PipelineError as e:
            self.root.after(0, self._on_scan_failed, e.message)
        except Exception as e:
            logger.error("Scan failed: %s", e, exc_info=True)
            self.root.after(0, self._on_scan_failed, str(e))
        else:
            self.root.after(0, self._on_scan_done, videos)

    def _on_scan_done(self, videos: list[VideoRecord]):
        self._scanning = False
        self.scan_btn.configure(state=tk.NORMAL)
        self.videos = videos
        self.video_table.update_videos(videos)
        self.to_match_btn.configure(state=tk.NORMAL if videos else tk.DISABLED)
        self.status_var.set(f"Scan complete! Found {len(videos)} video(s).")

    def _on_scan_failed(self, message: str):
        self._scanning = False
        self.scan_btn.configure(state=tk.NORMAL)
        self.status_var.set(f"Error: {message}")

    def _on_copy_urls(self):
        urls = self.video_table.selected_urls() or self.video_table.all_urls()
        if not urls:
            return
        self.root.clipboard_clear()
        self.root.clipboard_append("\n".join(urls))
        self.status_var.set(f"Copied {len(urls)} URL(s) to clipboard")

    # ── Step 2: Match ─────────────────────────────────────────────────

    def _build_match_tab(self, tab):
        ttk.Label(
            tab,
            text="Paste the audio URLs and the corresponding video URLs. "
                 "Line 1 of one list belongs to line 1 of the other. "
                 "Audio URLs must be publicly downloadable.",
            wraplength=780, justify=tk.LEFT,
        ).pack(fill=tk.X, padx=10, pady=(10, 5))

        lists = ttk.Frame(tab)
        lists.pack(fill=tk.BOTH, expand=True, padx=10)
        self.audio_input = UrlListInput(lists, "Audio URLs",
                                        "https://example.com/song1.mp3 ...",
                                        on_load_file=self._on_load_file)
        self.audio_input.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=(0, 5))
        self.video_input = UrlListInput(lists, "Corresponding Video URLs",
                                        "https://www.tiktok.com/@user/video/123 ...",
                                        on_load_file=self._on_load_file)
        self.video_input.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=(5, 0))

        ctrl = ttk.Frame(tab)
        ctrl.pack(fill=tk.X, padx=10, pady=10)
        ttk.Button(ctrl, text="Match URLs", command=self._on_match).pack(side=tk.LEFT)
        self.match_status_var = tk.StringVar(value="")
        self.match_status_label = ttk.Label(ctrl, textvariable=self.match_status_var)
        self.match_status_label.pack(side=tk.LEFT, padx=10)
        self.to_results_btn = ttk.Button(ctrl, text="Continue to Transcription",
                                         command=self._go_to_results, state=tk.DISABLED)
        self.to_results_btn.pack(side=tk.RIGHT)

    def _go_to_match(self):
        self.notebook.select(self.match_tab)

    def _on_tab_changed(self, event=None):
        if self.notebook.select() != str(self.match_tab) or self.pipeline.is_running():
            return
        # Entering the match step always discards the previous mapping
        self.audio_map = {}
        self.to_results_btn.configure(state=tk.DISABLED)
        self.match_status_label.configure(foreground="")
        self.match_status_var.set(f"0 / {len(self.videos)} videos matched")

    def _on_load_file(self, target: UrlListInput):
        filepath = filedialog.askopenfilename(
            title="Select URL file",
            filetypes=[("Text files", "*.txt"), ("CSV files", "*.csv"), ("All files", "*.*")],
        )
        if filepath:
            target.set_lines(parse_input_file(filepath))

    def _on_match(self):
        self.audio_map = {}
        self.to_results_btn.configure(state=tk.DISABLED)
        try:
            result = match_urls(
                parse_input_lines(self.audio_input.get_text()),
                parse_input_lines(self.video_input.get_text()),
                [v.source_url for v in self.videos],
            )
        except PipelineError as e:
            self.match_status_var.set(f"Error: {e.message}")
            self.match_status_label.configure(foreground="red")
            return

        self.audio_map = result.mapping
        if result.matched_count:
            self.match_status_var.set(
                f"Matched {result.matched_count} of {len(self.videos)} scanned video(s).")
            self.match_status_label.configure(foreground="green")
            self.to_results_btn.configure(state=tk.NORMAL)
        else:
            self.match_status_var.set(
                "No matching videos found. Check that the video URLs come from the scan in step 1.")
            self.match_status_label.configure(foreground="red")

    # ── Step 3: Transcribe ────────────────────────────────────────────

    def _build_results_tab(self, tab):
        ctrl = ttk.Frame(tab)
        ctrl.pack(fill=tk.X, padx=10, pady=(10, 5))

        self.run_status_var = tk.StringVar(value="Ready to transcribe.")
        ttk.Label(ctrl, textvariable=self.run_status_var).pack(side=tk.LEFT)

        self.export_btn = ttk.Button(ctrl, text="Export CSV", command=self._on_export)
        self.export_btn.pack(side=tk.RIGHT)
        self.start_over_btn = ttk.Button(ctrl, text="Start Over", command=self._on_start_over)
        self.start_over_btn.pack(side=tk.RIGHT, padx=(0, 5))
        self.stop_btn = ttk.Button(ctrl, text="Stop", command=self._on_stop, state=tk.DISABLED)
        self.stop_btn.pack(side=tk.RIGHT, padx=(0, 5))
        self.start_btn = ttk.Button(ctrl, text="Start", command=self._on_start)
        self.start_btn.pack(side=tk.RIGHT, padx=(0, 5))

        self.transcripts_list = TranscriptsList(tab)
        self.transcripts_list.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

    def _go_to_results(self):
        self.transcripts_list.set_videos(self.videos, self.audio_map, self.cache.as_dict())
        self.notebook.select(self.results_tab)
        self._on_start()

    def _on_start(self):
        api_key = get_credential(self.db, StorageKey.GEMINI_API_KEY)
        self.pipeline.config = self.config.as_dict()
        try:
            self.pipeline.start(self.videos, self.audio_map, api_key)
        except PipelineError as e:
            self.run_status_var.set(f"Error: {e.message}")
            return

        pending = len(build_work_set(self.videos, self.audio_map, self.cache))
        self.run_status_var.set(f"Starting: {pending} video(s) to transcribe...")
        self._set_running(True)

    def _on_stop(self):
        self.pipeline.stop()
        self.stop_btn.configure(state=tk.DISABLED)

    def _on_start_over(self):
        if self.pipeline.is_running():
            return
        self.videos = []
        self.audio_map = {}
        self.pipeline.reset_states()
        self.video_table.update_videos([])
        self.transcripts_list.set_videos([], {}, {})
        self.audio_input.clear()
        self.video_input.clear()
        self.match_status_var.set("")
        self.to_match_btn.configure(state=tk.DISABLED)
        self.to_results_btn.configure(state=tk.DISABLED)
        self.run_status_var.set("Ready to transcribe.")
        self.status_var.set("Ready.")
        self.notebook.select(self.scan_tab)

    def _on_export(self):
        path = write_results_csv(self.videos, self.cache.as_dict(),
                                 Path(self.config.output_root))
        if path is None:
            messagebox.showinfo(APP_DISPLAY_NAME, "No data to download.")
            return
        self.status_var.set(f"Exported {len(self.videos)} row(s) to {path}")

    def _set_running(self, running: bool):
        self.start_btn.configure(state=tk.DISABLED if running else tk.NORMAL)
        self.stop_btn.configure(state=tk.NORMAL if running else tk.DISABLED)
        self.start_over_btn.configure(state=tk.DISABLED if running else tk.NORMAL)
        self.export_btn.configure(state=tk.DISABLED if running else tk.NORMAL)

    def _on_config_changed(self):
        self.pipeline.config = self.config.as_dict()

    # ── Callbacks from worker thread ──────────────────────────────────

    def _on_pipeline_event_callback(self, event: PipelineEvent):
        """Called from worker thread — schedule UI update."""
        if self._closing:
            return
        self.root.after(0, self._handle_pipeline_event, event)

    def _handle_pipeline_event(self, event: PipelineEvent):
        if event.kind == EventKind.ITEM and event.state is not None:
            self.transcripts_list.update_state(event.source_url, event.state)
        elif event.kind == EventKind.PROGRESS:
            self.run_status_var.set(event.message)
        elif event.kind == EventKind.FINISHED:
            self.run_status_var.set(event.message)
            self._set_running(False)

    # ── Run ───────────────────────────────────────────────────────────

    def run(self):
        """Start the application main loop."""
        self.root.mainloop()

    def _on_close(self):
        self._closing = True
        self.pipeline.shutdown()
        self.root.destroy()

    def cleanup(self):
        """Cleanup on exit."""
        if self.pipeline.shutdown():
            self.db.close()
        else:
            # The worker may still write a finished transcript; the daemon
            # thread dies with the process and the store closes with it
            logger.warning("Leaving database open: transcription worker still running")


def main():
    """Application entry point."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(LOG_DIR / "app.log", encoding="utf-8"),
            ],
        )

    app = MainWindow()
    try:
        app.run()
    finally:
        app.cleanup()


if __name__ == "__main__":
    main()
