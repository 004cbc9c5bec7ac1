import os
import tkinter.ttk as ttk
from tkinter import messagebox

import customtkinter as ctk
from tkinterdnd2 import DND_FILES, TkinterDnD

from appsweep.config import BUNDLE_EXTENSION
from appsweep.discovery import DiscoveryEngine
from appsweep.errors import AlreadyRunning, RemovalUnsupported, SelectionLocked
from appsweep.formatting import format_size, format_summary, needs_full_disk_access
from appsweep.logger import DiagnosticLog
from appsweep.macos import open_full_disk_access_settings, reveal_in_finder
from appsweep.models import TaskProgress, TaskState
from appsweep.removal import RemovalExecutor
from appsweep.scheduler import RemovalTask, ScanTask, TaskFinished, TaskScheduler

POLL_INTERVAL_MS = 100

ctk.set_appearance_mode("System")
ctk.set_default_color_theme("blue")


class AppSweepWindow(ctk.CTk, TkinterDnD.DnDWrapper):
    """
    Presentation only: renders SharedState, toggles FileEntry.selected and
    hands everything else to the scheduler.
    """

    def __init__(self):
        super().__init__()
        self.TkdndVersion = TkinterDnD._require(self)

        self.title("App Sweep")
        self.geometry("1000x700")

        self.diagnostics = DiagnosticLog()
        self.engine = DiscoveryEngine(logger=self.diagnostics)
        self.executor = RemovalExecutor(logger=self.diagnostics)
        self.scheduler = TaskScheduler(logger=self.diagnostics)
        self.shared = self.scheduler.shared_state
        self.current_record = None
        self.status_lines = []

        self.grid_columnconfigure(1, weight=1)
        self.grid_rowconfigure(0, weight=1)

        self._init_app_list()
        self._init_details()
        self._init_status()

        self.drop_target_register(DND_FILES)
        self.dnd_bind('<<Drop>>', self.on_drop)

        self.after(POLL_INTERVAL_MS, self._poll_scheduler)
        self.after(500, self.start_scan)

    # --- LAYOUT ---

    def _init_app_list(self):
        frame = ctk.CTkFrame(self, width=320, corner_radius=0)
        frame.grid(row=0, column=0, sticky="nsew")

        header = ctk.CTkFrame(frame, fg_color="transparent")
        header.pack(fill="x", padx=10, pady=(10, 0))
        ctk.CTkLabel(header, text="APPLICATIONS", font=ctk.CTkFont(size=16, weight="bold")).pack(side="left")
        self.btn_refresh = ctk.CTkButton(header, text="Refresh", width=80, command=self.start_scan)
        self.btn_refresh.pack(side="right")

        self.search_entry = ctk.CTkEntry(frame, placeholder_text="Search apps...")
        self.search_entry.pack(fill="x", padx=10, pady=10)
        self.search_entry.bind("<KeyRelease>", self.on_search)

        container = ctk.CTkFrame(frame)
        container.pack(fill="both", expand=True, padx=10, pady=(0, 10))
        self.tree_apps = self._create_treeview(container, ("name", "running"), selectmode="browse")
        self.tree_apps.bind("<<TreeviewSelect>>", self.on_app_selected)

    def _init_details(self):
        frame = ctk.CTkFrame(self, corner_radius=0, fg_color="transparent")
        frame.grid(row=0, column=1, sticky="nsew")

        self.details_label = ctk.CTkLabel(frame, text="Select an application to see details.", justify="left", anchor="w")
        self.details_label.pack(fill="x", padx=20, pady=(15, 5))

        container = ctk.CTkFrame(frame)
        container.pack(fill="both", expand=True, padx=20, pady=5)
        self.tree_files = self._create_treeview(container, ("selected", "category", "path", "size"))
        self.tree_files.bind("<Double-1>", self.on_toggle_file)

        buttons = ctk.CTkFrame(frame, fg_color="transparent")
        buttons.pack(fill="x", padx=20, pady=10)
        ctk.CTkButton(buttons, text="Select All", width=90, command=lambda: self.select_all(True)).pack(side="left", padx=(0, 5))
        ctk.CTkButton(buttons, text="Select None", width=90, command=lambda: self.select_all(False)).pack(side="left", padx=5)
        ctk.CTkButton(buttons, text="Show in Finder", width=110, command=self.reveal_selected).pack(side="left", padx=5)

        self.btn_cancel = ctk.CTkButton(buttons, text="Cancel", width=80, fg_color="gray", command=self.scheduler.cancel)
        self.btn_cancel.pack(side="right", padx=(5, 0))
        self.btn_uninstall = ctk.CTkButton(buttons, text="Uninstall", fg_color="#C0392B", command=self.confirm_uninstall)
        self.btn_uninstall.pack(side="right", padx=5)

    def _init_status(self):
        frame = ctk.CTkFrame(self, corner_radius=0)
        frame.grid(row=1, column=0, columnspan=2, sticky="ew")

        self.progress_bar = ctk.CTkProgressBar(frame)
        self.progress_bar.set(0)
        self.progress_bar.pack(fill="x", padx=10, pady=(8, 2))

        self.status_label = ctk.CTkLabel(frame, text="Ready", anchor="w")
        self.status_label.pack(fill="x", padx=10)

        self.status_log = ctk.CTkTextbox(frame, height=120, wrap="none")
        self.status_log.pack(fill="x", padx=10, pady=5)
        self.status_log.configure(state="disabled")

        self.summary_label = ctk.CTkLabel(frame, text="", text_color="gray")
        self.summary_label.pack(pady=(0, 5))

    def _create_treeview(self, parent, cols, selectmode="extended"):
        style = ttk.Style()
        style.theme_use("clam")
        style.configure("Treeview", background="#2b2b2b", fieldbackground="#2b2b2b", foreground="white", borderwidth=0)
        style.configure("Treeview.Heading", background="#333333", foreground="white", relief="flat")
        style.map("Treeview", background=[('selected', '#1f538d')])

        tree = ttk.Treeview(parent, columns=cols, show="headings", selectmode=selectmode)
        for c in cols:
            tree.heading(c, text=c.title())
            if c == "size":
                tree.column(c, width=90, anchor="e")
            elif c in ("selected", "running"):
                tree.column(c, width=70, anchor="center")
            elif c == "category":
                tree.column(c, width=100)
            else:
                tree.column(c, width=240)

        sb = ttk.Scrollbar(parent, orient="vertical", command=tree.yview)
        tree.configure(yscrollcommand=sb.set)

        tree.pack(side="left", fill="both", expand=True)
        sb.pack(side="right", fill="y")
        return tree

    # --- STATUS ---

    def append_status(self, line):
        self.status_lines.append(line)
        self.status_log.configure(state="normal")
        self.status_log.insert("end", line + "\n")
        self.status_log.see("end")
        self.status_log.configure(state="disabled")

    def _set_busy(self, busy):
        state = "disabled" if busy else "normal"
        self.btn_refresh.configure(state=state)
        self.btn_uninstall.configure(state=state)
        if not busy:
            self.progress_bar.set(0)

    def _poll_scheduler(self):
        for event in self.scheduler.poll():
            if isinstance(event, TaskProgress):
                self.progress_bar.set(event.fraction)
                self.status_label.configure(text=event.message)
                if event.phase == "remove" and event.message:
                    self.append_status(event.message)
            elif isinstance(event, TaskFinished):
                self._on_task_finished(event)
        self.after(POLL_INTERVAL_MS, self._poll_scheduler)

    def _on_task_finished(self, event):
        self._set_busy(False)
        for warning in self.diagnostics.warnings():
            self.append_status(f"Warning: {warning}")
        self.diagnostics.clear()

        if event.state is TaskState.CANCELLED:
            self.status_label.configure(text="Cancelled")
            self.append_status(f"{event.phase.title()} cancelled.")
            return
        if event.state is TaskState.FAILED:
            self.status_label.configure(text="Failed")
            self.append_status(f"{event.phase.title()} failed: {event.error}")
            if isinstance(event.error, RemovalUnsupported):
                messagebox.showerror("Trash unavailable", str(event.error))
            return

        if event.phase == "scan":
            self.status_label.configure(text="Ready")
            self.btn_refresh.configure(text=f"Refresh ({len(self.shared.records)})")
            self.append_status("App list refreshed.")
            self.on_search(None)
        else:
            moved = sum(1 for o in event.result if o.succeeded)
            self.append_status(f"Uninstall finished: {moved} of {len(event.result)} items moved to Trash.")
            self.start_scan()

    # --- SCAN ---

    def start_scan(self):
        try:
            self.scheduler.start(ScanTask(self.engine))
        except AlreadyRunning as e:
            self.append_status(str(e))
            return
        self._set_busy(True)
        self.status_label.configure(text="Scanning /Applications and ~/Applications...")

    def on_search(self, event):
        query = self.search_entry.get().lower()
        selected_path = self.current_record.bundle_path if self.current_record else None
        self.tree_apps.delete(*self.tree_apps.get_children())
        for record in self.shared.records:
            if query and query not in record.display_name.lower():
                continue
            running = "yes" if record.is_running else ""
            self.tree_apps.insert("", "end", iid=record.bundle_path, values=(record.display_name, running))
        if selected_path and self.tree_apps.exists(selected_path):
            self.tree_apps.selection_set(selected_path)
        else:
            self.show_record(None)

    def on_drop(self, event):
        files = self.tk.splitlist(event.data)
        for f in files:
            if f.endswith(BUNDLE_EXTENSION):
                base = os.path.basename(f)[:-len(BUNDLE_EXTENSION)]
                self.search_entry.delete(0, "end")
                self.search_entry.insert(0, base)
                self.on_search(None)
                break

    # --- DETAILS ---

    def on_app_selected(self, event):
        sel = self.tree_apps.selection()
        self.show_record(self.shared.record_for(sel[0]) if sel else None)

    def show_record(self, record):
        self.current_record = record
        self.tree_files.delete(*self.tree_files.get_children())
        if record is None:
            self.details_label.configure(text="Select an application to see details.")
            self.summary_label.configure(text=format_summary(len(self.shared.records), []))
            return

        lines = [
            record.display_name,
            f"Bundle ID: {record.identifier or 'unknown'}",
            f"Version: {record.version or 'unknown'}",
            f"Path: {record.bundle_path}",
        ]
        if record.is_running:
            lines.append("Application is running; quit it before uninstalling.")
        self.details_label.configure(text="\n".join(lines))
        self._render_files()

    def _render_files(self):
        record = self.current_record
        self.tree_files.delete(*self.tree_files.get_children())
        for i, entry in enumerate(record.related_files):
            mark = "✓" if entry.selected else ""
            category = entry.category.value + ("?" if entry.low_confidence else "")
            self.tree_files.insert("", "end", iid=str(i), values=(mark, category, entry.path, format_size(entry.size_bytes)))
        self.summary_label.configure(text=format_summary(len(self.shared.records), record.related_files))

    def on_toggle_file(self, event):
        item = self.tree_files.identify_row(event.y)
        if not item or self.current_record is None:
            return
        entry = self.current_record.related_files[int(item)]
        try:
            self.shared.set_selected(entry, not entry.selected)
        except SelectionLocked as e:
            self.append_status(str(e))
            return
        self._render_files()

    def select_all(self, selected):
        if self.current_record is None:
            return
        try:
            self.shared.select_all(self.current_record, selected)
        except SelectionLocked as e:
            self.append_status(str(e))
            return
        self._render_files()

    def reveal_selected(self):
        if self.current_record is None:
            return
        sel = self.tree_files.selection()
        paths = [self.current_record.related_files[int(i)].path for i in sel] or [self.current_record.bundle_path]
        if not reveal_in_finder(paths[0]):
            self.append_status(f"Could not show in Finder: {paths[0]}")

    # --- UNINSTALL ---

    def confirm_uninstall(self):
        record = self.current_record
        if record is None:
            return
        if record.is_running:
            messagebox.showwarning("App Running", f"{record.display_name} is currently running.\nQuit it first; its files will be skipped otherwise.")

        task = RemovalTask.for_record(self.executor, record)
        paths = [request.path for request in task.requests]
        if needs_full_disk_access(paths):
            self.append_status("This uninstall touches system receipts. Full Disk Access may be required.")
            if self.shared.full_disk_access is False and messagebox.askyesno("Full Disk Access", "Open System Settings to grant Full Disk Access?"):
                open_full_disk_access_settings()

        if not messagebox.askyesno("Confirm Uninstall", f"Move {len(paths)} items to the Trash?\n\n" + "\n".join(paths[:15])):
            return
        try:
            self.scheduler.start(task)
        except AlreadyRunning as e:
            self.append_status(str(e))
            return
        self._set_busy(True)
        self.append_status(f"Starting uninstall of {record.display_name}...")


def run():
    app = AppSweepWindow()
    app.mainloop()

