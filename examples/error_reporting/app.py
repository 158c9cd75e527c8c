"""Error reporting -- where did my template go wrong?

Renders a page whose included nav template refers to an undefined name,
once with a default context and once in debug mode. Debug mode maps the
failing generated line back to the template line and shows a snippet.
A second template is missing its closing ``%>``.

Run:
    python app.py
"""

from pathlib import Path

from stencil import Context, FileSystemLoader, TemplateError

templates_dir = Path(__file__).parent / "templates"
data = {"title": "Home", "content": "Hi", "username": "ada"}


def render_error(ctx: Context, name: str) -> TemplateError:
    try:
        ctx.render(name, data)
    except TemplateError as e:
        return e
    raise AssertionError(f"{name} rendered without error")


plain_error = render_error(Context(FileSystemLoader(templates_dir)), "page.lt")
debug_error = render_error(Context(FileSystemLoader(templates_dir), debug=True), "page.lt")
syntax_error = render_error(Context(FileSystemLoader(templates_dir)), "broken.lt")


def main() -> None:
    for label, error in [
        ("Without debug mode", plain_error),
        ("With debug mode", debug_error),
        ("Unterminated directive", syntax_error),
    ]:
        print("=" * 60)
        print(label)
        print("=" * 60)
        print(error.format_compact())
        print()


if __name__ == "__main__":
    main()
