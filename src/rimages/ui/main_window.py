from __future__ import annotations

import logging
import os
import tkinter as tk
from tkinter import filedialog, ttk

from rimages.app.orchestrator import Orchestrator
from rimages.app.scheduler import TkScheduler
from rimages.app.settings import (
    load_app_settings,
    save_app_settings,
    settings_from_state,
    state_from_settings,
)
from rimages.app.state import clamp_quality, parse_dimension
from rimages.core.events import EventBus
from rimages.core.formatting import format_bytes, format_dimensions, format_gain, gain_percent
from rimages.core.models import ACCEPTED_EXTENSIONS, OUTPUT_FORMATS, ItemStatus, WorkItem
from rimages.engine.local_engine import LocalEngine

logger = logging.getLogger(__name__)

FORMAT_LABELS = {"webp": "WebP", "avif": "AVIF", "jpg": "JPEG", "png": "PNG"}
STATUS_LABELS = {
    ItemStatus.IDLE: "",
    ItemStatus.PROCESSING: "…",
    ItemStatus.SUCCESS: "✅",
    ItemStatus.ERROR: "❌",
}


class RimagesApp(ttk.Frame):
    """Batch image compressor: file list on the right, settings and progress on the left."""

    def __init__(self, master: tk.Tk, orchestrator: Orchestrator):
        super().__init__(master)
        self.master = master
        self.orchestrator = orchestrator
        self._render_pending = False

        self._build_style()
        self._build_layout()
        self._bind_shortcuts()

        self.orchestrator.subscribe(self._schedule_render)
        self.render()

    # ---------- UI construction ----------

    def _build_style(self) -> None:
        style = ttk.Style(self.master)
        try:
            style.theme_use("clam" if "clam" in style.theme_names() else style.theme_use())
        except tk.TclError:
            pass

    def _build_layout(self) -> None:
        self.pack(fill="both", expand=True)
        state = self.orchestrator.state

        main = ttk.PanedWindow(self, orient="horizontal")
        main.pack(side="top", fill="both", expand=True, padx=10, pady=10)

        # Left pane: settings + run
        sidebar = ttk.Frame(main, padding=8)
        main.add(sidebar, weight=0)
        sidebar.columnconfigure(0, weight=1)

        lf_dest = ttk.LabelFrame(sidebar, text="Save Destination", padding=8)
        lf_dest.grid(row=0, column=0, sticky="ew")
        self.btn_output = ttk.Button(lf_dest, text="Choose folder…", command=self.on_choose_output)
        self.btn_output.pack(fill="x")

        lf_settings = ttk.LabelFrame(sidebar, text="Settings", padding=8)
        lf_settings.grid(row=1, column=0, sticky="ew", pady=(8, 0))
        lf_settings.columnconfigure(1, weight=1)

        ttk.Label(lf_settings, text="Output format:").grid(row=0, column=0, sticky="w", pady=3)
        self.var_format = tk.StringVar(value=FORMAT_LABELS[state.format])
        self.combo_format = ttk.Combobox(
            lf_settings,
            textvariable=self.var_format,
            values=[FORMAT_LABELS[f] for f in OUTPUT_FORMATS],
            state="readonly",
            width=8,
        )
        self.combo_format.grid(row=0, column=1, sticky="w", pady=3)
        self.combo_format.bind("<<ComboboxSelected>>", lambda e: self.on_format_changed())

        ttk.Label(lf_settings, text="Quality:").grid(row=1, column=0, sticky="w", pady=3)
        self.quality_label = ttk.Label(lf_settings, text=f"{state.quality}%", width=5)
        self.quality_label.grid(row=1, column=2, sticky="e", pady=3)
        self.scale_quality = ttk.Scale(
            lf_settings,
            from_=10,
            to=100,
            value=state.quality,
            orient="horizontal",
            command=self.on_quality_changed,
        )
        self.scale_quality.grid(row=1, column=1, sticky="ew", pady=3)

        ttk.Label(lf_settings, text="Max width (px):").grid(row=2, column=0, sticky="w", pady=3)
        self.var_max_width = tk.StringVar(value=str(state.max_width or ""))
        entry_w = ttk.Entry(lf_settings, textvariable=self.var_max_width, width=8)
        entry_w.grid(row=2, column=1, sticky="w", pady=3)

        ttk.Label(lf_settings, text="Max height (px):").grid(row=3, column=0, sticky="w", pady=3)
        self.var_max_height = tk.StringVar(value=str(state.max_height or ""))
        entry_h = ttk.Entry(lf_settings, textvariable=self.var_max_height, width=8)
        entry_h.grid(row=3, column=1, sticky="w", pady=3)

        self.var_max_width.trace_add("write", lambda *_: self.on_dimensions_changed())
        self.var_max_height.trace_add("write", lambda *_: self.on_dimensions_changed())

        run_box = ttk.Frame(sidebar)
        run_box.grid(row=2, column=0, sticky="ew", pady=(16, 0))
        run_box.columnconfigure(0, weight=1)

        self.btn_compress = ttk.Button(run_box, text="COMPRESS", command=self.on_compress)
        self.btn_compress.grid(row=0, column=0, sticky="ew")

        self.progress = ttk.Progressbar(run_box, mode="determinate", maximum=1.0)
        self.progress.grid(row=1, column=0, sticky="ew", pady=(8, 0))
        self.progress_var = tk.StringVar(value="")
        ttk.Label(run_box, textvariable=self.progress_var).grid(row=2, column=0, sticky="w")

        self.saved_var = tk.StringVar(value="")
        ttk.Label(run_box, textvariable=self.saved_var).grid(row=3, column=0, sticky="w", pady=(6, 0))
        self.btn_open_folder = ttk.Button(run_box, text="Open Output Folder", command=self.on_open_folder)
        self.btn_open_folder.grid(row=4, column=0, sticky="ew", pady=(4, 0))

        # Right pane: file list
        right = ttk.Frame(main, padding=8)
        main.add(right, weight=1)
        right.columnconfigure(0, weight=1)
        right.rowconfigure(1, weight=1)

        toolbar = ttk.Frame(right)
        toolbar.grid(row=0, column=0, sticky="ew", pady=(0, 8))
        ttk.Label(toolbar, text="My Images", font=("TkDefaultFont", 12, "bold")).pack(side="left")
        self.btn_clear = ttk.Button(toolbar, text="Clear All", command=self.on_clear)
        self.btn_clear.pack(side="right")
        self.btn_remove = ttk.Button(toolbar, text="Remove", command=self.on_remove_selected)
        self.btn_remove.pack(side="right", padx=(0, 6))
        self.btn_add = ttk.Button(toolbar, text="Add", command=self.on_add)
        self.btn_add.pack(side="right", padx=(0, 6))

        columns = ("name", "type", "dimensions", "original", "estimate", "gain", "status")
        self.tree = ttk.Treeview(right, columns=columns, show="headings", selectmode="extended")
        headings = {
            "name": ("Name", 220, True),
            "type": ("Type", 60, False),
            "dimensions": ("Dimensions", 100, False),
            "original": ("Original", 80, False),
            "estimate": ("Estimate", 80, False),
            "gain": ("Gain", 60, False),
            "status": ("Status", 260, True),
        }
        for col, (label, width, stretch) in headings.items():
            self.tree.heading(col, text=label)
            self.tree.column(col, width=width, stretch=stretch)
        self.tree.grid(row=1, column=0, sticky="nsew")

        scroll = ttk.Scrollbar(right, orient="vertical", command=self.tree.yview)
        scroll.grid(row=1, column=1, sticky="ns")
        self.tree.configure(yscrollcommand=scroll.set)

        # Status bar
        status = ttk.Frame(self, padding=(10, 6))
        status.pack(side="bottom", fill="x")
        self.status_var = tk.StringVar(value="Ready.")
        ttk.Label(status, textvariable=self.status_var).pack(side="left")

    def _bind_shortcuts(self) -> None:
        self.master.bind_all("<Control-o>", lambda e: self.on_add())
        self.master.bind_all("<Command-o>", lambda e: self.on_add())
        self.tree.bind("<Delete>", lambda e: self.on_remove_selected())
        self.tree.bind("<BackSpace>", lambda e: self.on_remove_selected())

    # ---------- Rendering ----------

    def set_status(self, text: str) -> None:
        self.status_var.set(text)

    def _schedule_render(self) -> None:
        # Coalesce bursts of store notifications into one redraw per loop turn.
        if self._render_pending:
            return
        self._render_pending = True
        self.master.after_idle(self.render)

    def render(self) -> None:
        self._render_pending = False
        self._render_rows()
        self._render_controls()

    def _row_values(self, item: WorkItem) -> tuple:
        status = STATUS_LABELS[item.status]
        if item.status is ItemStatus.ERROR and item.error_message:
            status = f"{status} {item.error_message}"
        return (
            item.display_name,
            item.extension.lstrip(".").upper(),
            format_dimensions(item.width, item.height),
            format_bytes(item.original_size),
            format_bytes(item.preview_size) if item.preview_size is not None else "",
            format_gain(gain_percent(item.original_size, item.preview_size)),
            status,
        )

    def _render_rows(self) -> None:
        items = self.orchestrator.items
        wanted = [item.path for item in items]
        existing = set(self.tree.get_children())
        for iid in existing - set(wanted):
            self.tree.delete(iid)
        for index, item in enumerate(items):
            values = self._row_values(item)
            if item.path in existing:
                self.tree.item(item.path, values=values)
                self.tree.move(item.path, "", index)
            else:
                self.tree.insert("", index, iid=item.path, values=values)

    def _render_controls(self) -> None:
        orch = self.orchestrator
        summary = orch.summary()
        state = orch.state

        folder = state.output_dir
        self.btn_output.configure(text=os.path.basename(folder.rstrip("/\\")) or folder or "Choose folder…")

        if summary.is_processing:
            self.btn_compress.configure(text="Processing…")
        elif summary.is_complete:
            self.btn_compress.configure(text="Done!")
        else:
            self.btn_compress.configure(text=f"COMPRESS ({len(orch.items)})")
        self.btn_compress.state(["!disabled"] if orch.can_start else ["disabled"])

        busy = ["disabled"] if summary.is_processing else ["!disabled"]
        self.btn_add.state(busy)
        self.btn_remove.state(busy)
        self.btn_output.state(busy)

        if summary.is_processing or summary.is_complete:
            self.progress.configure(value=summary.fraction)
            self.progress_var.set(f"{summary.processed_count} / {summary.total_count}")
        else:
            self.progress.configure(value=0)
            self.progress_var.set("")

        if summary.is_complete and summary.total_bytes_saved > 0:
            self.saved_var.set(f"You saved {format_bytes(summary.total_bytes_saved)}!")
        else:
            self.saved_var.set("")
        self.btn_open_folder.state(["!disabled"] if summary.is_complete else ["disabled"])

        if summary.is_processing:
            self.set_status("Compressing…")
        elif state.run.error:
            self.set_status(f"Compression could not start: {state.run.error}")
        elif summary.is_complete:
            self.set_status(f"Done. {summary.processed_count} succeeded, {summary.failed_count} failed.")
        elif not orch.items:
            self.set_status("Add images to get started.")
        else:
            self.set_status(f"{len(orch.items)} image(s) ready.")

    # ---------- Actions ----------

    def on_add(self) -> None:
        patterns = " ".join(f"*{ext}" for ext in ACCEPTED_EXTENSIONS)
        paths = filedialog.askopenfilenames(
            title="Select images",
            filetypes=[("Images", patterns), ("All files", "*.*")],
        )
        if paths:
            self.orchestrator.add_files(list(paths))

    def on_remove_selected(self) -> None:
        if self.orchestrator.is_processing:
            return
        for path in self.tree.selection():
            item = self.orchestrator.store.get(path)
            if item is not None and item.status is ItemStatus.IDLE:
                self.orchestrator.remove_file(path)

    def on_clear(self) -> None:
        self.orchestrator.clear()

    def on_choose_output(self) -> None:
        selected = filedialog.askdirectory(title="Choose output folder", initialdir=self.orchestrator.state.output_dir or None)
        if selected:
            self.orchestrator.set_output_dir(selected)

    def on_format_changed(self) -> None:
        label = self.var_format.get()
        for fmt, text in FORMAT_LABELS.items():
            if text == label:
                self.orchestrator.set_format(fmt)
                return

    def on_quality_changed(self, raw: str) -> None:
        quality = clamp_quality(raw)
        self.quality_label.configure(text=f"{quality}%")
        self.orchestrator.set_quality(quality)

    def on_dimensions_changed(self) -> None:
        self.orchestrator.set_max_width(parse_dimension(self.var_max_width.get()))
        self.orchestrator.set_max_height(parse_dimension(self.var_max_height.get()))

    def on_compress(self) -> None:
        if not self.orchestrator.start_compression():
            self.set_status("Nothing to compress.")

    def on_open_folder(self) -> None:
        self.orchestrator.open_output_folder()


def run() -> None:
    root = tk.Tk()
    root.title("Rimages")
    root.geometry("1100x650")
    root.minsize(900, 520)

    scheduler = TkScheduler(root)
    bus = EventBus(scheduler.call_soon)
    engine = LocalEngine(bus)
    state = state_from_settings(load_app_settings())
    orchestrator = Orchestrator(engine, bus, scheduler, state)
    RimagesApp(root, orchestrator)

    def on_close() -> None:
        save_app_settings(settings_from_state(orchestrator.state))
        root.destroy()

    root.protocol("WM_DELETE_WINDOW", on_close)
    logger.info("Rimages started")
    root.mainloop()
