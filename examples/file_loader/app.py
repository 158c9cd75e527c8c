"""File-based templates -- the most common real-world pattern.

Loads templates from disk with FileSystemLoader, demonstrates template
inheritance (extends/block), includes, and the ``custom/`` override
directory (``templates/custom/footer.lt`` replaces ``templates/footer.lt``).

Run:
    python app.py
"""

from pathlib import Path

from stencil import Context, FileSystemLoader

templates_dir = Path(__file__).parent / "templates"
ctx = Context(FileSystemLoader([templates_dir / "custom", templates_dir]))

site = {
    "site_name": "My Site",
    "nav_items": [
        {"url": "/", "label": "Home"},
        {"url": "/about", "label": "About"},
    ],
}

# Render both pages
home_output = ctx.render(
    "home.lt",
    {
        **site,
        "title": "Welcome",
        "message": "This is a stencil-powered site with template inheritance.",
    },
)

about_output = ctx.render(
    "about.lt",
    {
        **site,
        "title": "About Us",
        "description": "Templates <compile> to Python & run as plain code.",
        "team": ["Ada", "Grace"],
    },
)


def main() -> None:
    print("=== Home Page ===")
    print(home_output)
    print()
    print("=== About Page ===")
    print(about_output)


if __name__ == "__main__":
    main()
