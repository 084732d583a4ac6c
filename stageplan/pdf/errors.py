from __future__ import annotations


MSG_NOTHING_TO_EXPORT = "Nothing to export"
MSG_NO_OUTPUT = "No output file was provided for the PDF plan."
MSG_FOLDER_MISSING = "The selected folder does not exist."
MSG_VIEWPORT_NOT_READY = "The 2D viewport is not ready for export."
MSG_INVALID_ZOOM = "Invalid zoom value provided for export."
MSG_NO_DRAWING_SPACE = "The selected paper size and margins leave no space for drawing."
MSG_VIEWPORT_INVALID = "Viewport dimensions are invalid for export."

MSG_NO_LAYOUT_VIEWS = "No layout views were provided for export."
MSG_LAYOUT_NO_OUTPUT = "No output file was provided for the PDF layout."
MSG_LAYOUT_CAPTURE_FAILED = "Unable to capture one or more layout views."
MSG_LAYOUT_VIEWPORT_NOT_READY = "The 2D viewport is not ready for layout export."
MSG_LAYOUT_INVALID_ZOOM = "Invalid zoom value provided for layout export."
MSG_LAYOUT_FRAME_INVALID = "Layout frame dimensions are invalid for export."
MSG_LAYOUT_VIEW_INVALID = "Layout view dimensions are invalid for export."
MSG_LAYOUT_NO_PAGE = "The selected paper size leaves no space for drawing."

MSG_OPEN_FAILED = "Unable to open the destination file for writing."
MSG_GENERATE_FAILED = "Failed to generate PDF content: "
MSG_UNKNOWN_ERROR = "An unknown error occurred while generating the PDF plan."


class ExportValidationError(ValueError):
    """Input rejected before any output is produced; the message is user-facing."""


class FontParseError(ValueError):
    pass
