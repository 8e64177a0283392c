"""Outer collaborators: the AI advisor and the spreadsheet export."""
