"""Hello World -- the simplest stencil example.

Compile a template file and render it with data.

Run:
    python app.py
"""

from pathlib import Path

from stencil import Context, FileSystemLoader

ctx = Context(FileSystemLoader(Path(__file__).parent / "templates"))

# Compiled on first use, cached afterwards
output = ctx.render("hello.lt", {"name": "World"})


def main() -> None:
    print(output)
    print()

    # Multiple renders with different data reuse the compiled template
    for name in ["Stencil", "Python"]:
        print(ctx.render("hello.lt", {"name": name}))


if __name__ == "__main__":
    main()
