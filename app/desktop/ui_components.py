"""
Reusable UI components for ChannelTranscriber.
Built with tkinter (ships with macOS Python).
"""

import tkinter as tk
from tkinter import ttk
from typing import Callable

from app.core.constants import TranscriptStatus
from app.core.models import VideoRecord, TranscriptState


class UrlListInput(ttk.LabelFrame):
    """Labelled text box for pasting one URL per line."""

    def __init__(self, parent, title: str, placeholder: str = "",
                 on_load_file: Callable[["UrlListInput"], None] = None, **kwargs):
        super().__init__(parent, text=f"  {title}  ", padding=10, **kwargs)
        self.on_load_file = on_load_file
        self._build(placeholder)

    def _build(self, placeholder: str):
        if placeholder:
            ttk.Label(self, text=placeholder, foreground="gray",
                      wraplength=320).pack(fill=tk.X, pady=(0, 5))

        text_frame = ttk.Frame(self)
        text_frame.pack(fill=tk.BOTH, expand=True)

        self.text_area = tk.Text(
            text_frame,
            height=10,
            wrap=tk.NONE,
            font=("Menlo", 11),
            relief=tk.SUNKEN,
            borderwidth=1,
        )
        scrollbar = ttk.Scrollbar(text_frame, orient=tk.VERTICAL,
                                  command=self.text_area.yview)
        self.text_area.configure(yscrollcommand=scrollbar.set)
        self.text_area.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)

        if self.on_load_file:
            ttk.Button(self, text="Load File...",
                       command=lambda: self.on_load_file(self)).pack(anchor=tk.E, pady=(5, 0))

    def get_text(self) -> str:
        return self.text_area.get("1.0", tk.END).strip()

    def set_lines(self, lines: list[str]):
        self.clear()
        self.text_area.insert("1.0", "\n".join(lines))

    def clear(self):
        self.text_area.delete("1.0", tk.END)


class VideoTable(ttk.LabelFrame):
    """Scan results as a sortable-by-order table."""

    COLUMNS = (
        ("#", 40), ("Author", 140), ("Description", 320),
        ("Plays", 80), ("Likes", 70), ("Duration", 70), ("URL", 260),
    )

    def __init__(self, parent, **kwargs):
        super().__init__(parent, text="  Scanned Videos  ", padding=5, **kwargs)
        self._build()

    def _build(self):
        names = [c[0] for c in self.COLUMNS]
        self.tree = ttk.Treeview(self, columns=names, show="headings", height=12)
        for name, width in self.COLUMNS:
            self.tree.heading(name, text=name)
            self.tree.column(name, width=width, anchor=tk.W, stretch=(name == "Description"))

        scrollbar = ttk.Scrollbar(self, orient=tk.VERTICAL, command=self.tree.yview)
        self.tree.configure(yscrollcommand=scrollbar.set)
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)

    def update_videos(self, videos: list[VideoRecord]):
        self.tree.delete(*self.tree.get_children())
        for i, v in enumerate(videos, start=1):
            desc = v.text.replace("\n", " ")
            if len(desc) > 90:
                desc = desc[:87] + "..."
            self.tree.insert("", tk.END, iid=str(i), values=(
                i, v.author.nickname, desc, v.play_count, v.digg_count,
                v.video.duration, v.source_url,
            ))

    def selected_urls(self) -> list[str]:
        return [self.tree.set(iid, "URL") for iid in self.tree.selection()]

    def all_urls(self) -> list[str]:
        return [self.tree.set(iid, "URL") for iid in self.tree.get_children()]


_STATUS_LABELS = {
    TranscriptStatus.PENDING: ("Waiting", "gray"),
    TranscriptStatus.FETCHING: ("Fetching audio", "blue"),
    TranscriptStatus.TRANSCRIBING: ("Transcribing", "blue"),
    TranscriptStatus.SUCCESS: ("Done", "green"),
    TranscriptStatus.ERROR: ("Failed", "red"),
}


class TranscriptRow(ttk.Frame):
    """Single video row in the transcripts list."""

    def __init__(self, parent, video: VideoRecord, matched: bool, **kwargs):
        super().__init__(parent, **kwargs)
        self.source_url = video.source_url
        self._build(video, matched)

    def _build(self, video: VideoRecord, matched: bool):
        title = video.text.replace("\n", " ") or video.identity
        if len(title) > 60:
            title = title[:57] + "..."
        ttk.Label(self, text=video.author.nickname, width=18, anchor=tk.W).grid(
            row=0, column=0, sticky=tk.W, padx=(5, 10))
        ttk.Label(self, text=title, width=45, anchor=tk.W).grid(
            row=0, column=1, sticky=tk.W, padx=(0, 10))

        self.status_label = ttk.Label(self, text="" if matched else "Not matched",
                                      width=16, anchor=tk.W, foreground="gray")
        self.status_label.grid(row=0, column=2, sticky=tk.W)

        self.detail_label = ttk.Label(self, text="", wraplength=620,
                                      justify=tk.LEFT, foreground="gray")
        self.detail_label.grid(row=1, column=0, columnspan=3, sticky=tk.W, padx=5)

    def show_cached(self, transcript: str):
        self.status_label.configure(text="Cached", foreground="green")
        self.detail_label.configure(text=_preview(transcript), foreground="black")

    def update_state(self, state: TranscriptState):
        label, color = _STATUS_LABELS.get(state.status, (state.status, "gray"))
        self.status_label.configure(text=label, foreground=color)
        if state.status == TranscriptStatus.SUCCESS:
            self.detail_label.configure(text=_preview(state.detail), foreground="black")
        else:
            self.detail_label.configure(text=state.detail[:200], foreground=color)


def _preview(text: str, limit: int = 300) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[:limit - 3] + "..."


class TranscriptsList(ttk.LabelFrame):
    """Scrollable list of transcript rows, one per scanned video."""

    def __init__(self, parent, **kwargs):
        super().__init__(parent, text="  Transcripts  ", padding=5, **kwargs)
        self._rows: dict[str, TranscriptRow] = {}
        self._build()

    def _build(self):
        self.canvas = tk.Canvas(self, highlightthickness=0)
        self.scrollbar = ttk.Scrollbar(self, orient=tk.VERTICAL,
                                       command=self.canvas.yview)
        self.inner_frame = ttk.Frame(self.canvas)

        self.inner_frame.bind(
            "<Configure>",
            lambda e: self.canvas.configure(scrollregion=self.canvas.bbox("all")),
        )
        self.canvas_window = self.canvas.create_window(
            (0, 0), window=self.inner_frame, anchor=tk.NW,
        )
        self.canvas.configure(yscrollcommand=self.scrollbar.set)
        self.canvas.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        self.canvas.bind("<Configure>", self._on_canvas_resize)

    def _on_canvas_resize(self, event):
        self.canvas.itemconfig(self.canvas_window, width=event.width)

    def set_videos(self, videos: list[VideoRecord], audio_map: dict[str, str],
                   cached: dict[str, str]):
        """Rebuild the list for a new run."""
        for widget in self.inner_frame.winfo_children():
            widget.destroy()
        self._rows.clear()

        if not videos:
            ttk.Label(self.inner_frame, text="No videos scanned",
                      foreground="gray", font=("Helvetica", 12, "italic")).pack(pady=20)
            return

        for video in videos:
            row = TranscriptRow(self.inner_frame, video,
                                matched=video.source_url in audio_map)
            if video.source_url in cached:
                row.show_cached(cached[video.source_url])
            row.pack(fill=tk.X, padx=5, pady=2)
            ttk.Separator(self.inner_frame, orient=tk.HORIZONTAL).pack(fill=tk.X, padx=5)
            self._rows[video.source_url] = row

    def update_state(self, source_url: str, state: TranscriptState):
        row = self._rows.get(source_url)
        if row:
            row.update_state(state)
