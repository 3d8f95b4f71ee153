"""Template rendering and user-facing alerts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from starlette.requests import Request
from starlette.responses import Response
from starlette.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


@dataclass(frozen=True)
class Alert:
    style: str
    message: str


def success_alert(message: str, *args: Any) -> Alert:
    return Alert("success", " ".join([message, *map(str, args)]))


def error_alert(message: str, *args: Any) -> Alert:
    """Build an error alert; extra args (e.g. an exception) are appended."""
    if args:
        message = f"{message}: " + ", ".join(str(arg) for arg in args)
    return Alert("danger", message)


class TemplateData(dict):
    """Named values handed to a template, plus accumulated alerts."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.setdefault("alerts", [])

    @property
    def alerts(self) -> list[Alert]:
        return self["alerts"]

    def add_alerts(self, *alerts: Alert) -> "TemplateData":
        self["alerts"].extend(alerts)
        return self


def render_error(request: Request, error: str, status_code: int, title: str = "Error") -> Response:
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "error": error,
            "error_code": status_code,
            "title": title
        },
        status_code=status_code
    )
