#!/usr/bin/env python3
"""
    plan2xl_gui.py -- converter window for plan2xl.py

    Paste a JSON timetable into the text box (or drop a .json file on the
    window) and press the button to save it as an Excel grid.
"""
import logging
import threading
import tkinter as tk
from pathlib import Path
from tkinter import filedialog, messagebox
from tkinter.scrolledtext import ScrolledText

from tkinterdnd2 import DND_FILES, TkinterDnD

from plan2xl import Config, TimetableFormatError, build_workbook, parse_timetable, read_chunks, save_workbook

logger = logging.getLogger(__name__)


class App(TkinterDnD.Tk):
    def __init__(self, config: Config = None):
        super().__init__()
        self.settings = config or Config()
        self.current_file = None

        self.title(self.settings.get('TITLE', section='GUI'))
        self.geometry(f"{self.settings.getint('WIDTH', 'GUI')}x{self.settings.getint('HEIGHT', 'GUI')}")

        self._build_ui()

    def _build_ui(self):
        # pack the button first so the text box cannot squeeze it out
        self.convert_btn = tk.Button(self, text="In Excel umwandeln", height=2, command=self.convert)
        self.convert_btn.pack(side="bottom", fill="x")

        xscroll = tk.Scrollbar(self, orient="horizontal")
        xscroll.pack(side="bottom", fill="x")

        font = (self.settings.get('FONT', section='GUI'), self.settings.getint('FONT_SIZE', 'GUI'))
        self.text = ScrolledText(self, wrap="none", font=font, undo=True, xscrollcommand=xscroll.set)
        self.text.pack(fill="both", expand=True)
        xscroll.configure(command=self.text.xview)

        for widget in (self, self.text):
            widget.drop_target_register(DND_FILES)
            widget.dnd_bind("<<Drop>>", self.on_drop)

    def on_drop(self, event):
        # Tcl list: paths with spaces arrive as {...}
        paths = self.tk.splitlist(event.data)
        if paths and Path(paths[0]).is_file():
            self.load_file(paths[0])
        return event.action

    def load_file(self, path):
        """Fill the text box from path, a chunk at a time, without blocking the window."""
        self.current_file = Path(path)
        self.text.delete("1.0", "end")
        lines_per_chunk = self.settings.lines_per_chunk
        logger.debug(f"Loading '{path}' in chunks of {lines_per_chunk} lines...")

        def worker():
            try:
                for chunk in read_chunks(path, lines_per_chunk):
                    self.after(0, lambda c=chunk: self._append(c))
            except (OSError, UnicodeDecodeError) as e:
                self.after(0, lambda err=e: self._on_error(err))

        threading.Thread(target=worker, daemon=True).start()

    def _append(self, chunk: str):
        self.text.insert("end", chunk)

    def _on_error(self, e: Exception):
        logger.error(f"Fehler: {e}")
        messagebox.showerror("Fehler", f"Fehler: {e}")

    def convert(self):
        text = self.text.get("1.0", "end-1c")
        if not text.strip():
            messagebox.showwarning("Fehler", "Bitte JSON einfügen oder Datei ziehen!")
            return

        try:
            try:
                timetable = parse_timetable(text)
            except TimetableFormatError as e:
                messagebox.showerror("Fehler", str(e))
                return

            workbook = build_workbook(timetable, self.settings)

            filename = filedialog.asksaveasfilename(
                title="Excel speichern",
                defaultextension=".xlsx",
                filetypes=[("Excel-Datei", "*.xlsx")],
                initialfile=self.settings.get('OUTPUT_FILE'),
            )
            if not filename:
                return

            save_workbook(workbook, filename)
            logger.info(f"Excel saved to '{filename}'.")
            messagebox.showinfo("Fertig", f"Excel gespeichert:\n{filename}")
        except Exception as e:
            self._on_error(e)


if __name__ == "__main__":
    App().mainloop()
