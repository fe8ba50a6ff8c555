from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from receiptdesk.utils.formatters import format_amount

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"])
)
env.filters["inr"] = format_amount


def render_template(template_path: str, **context) -> str:
    template = env.get_template(template_path)
    return template.render(**context)
