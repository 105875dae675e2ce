"""Keyword-driven code templates for code-generation steps."""

import html
from dataclasses import dataclass

HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <header>
    <h1>{title}</h1>
  </header>
  <main>
    <p>{description}</p>
  </main>
  <script src="script.js"></script>
</body>
</html>
"""

CSS_TEMPLATE = """\
* {{
  box-sizing: border-box;
  margin: 0;
  padding: 0;
}}

body {{
  font-family: system-ui, sans-serif;
  line-height: 1.6;
  color: #1f2937;
  background: #f9fafb;
}}

header, main {{
  max-width: 960px;
  margin: 0 auto;
  padding: 2rem 1rem;
}}
"""

JS_TEMPLATE = """\
document.addEventListener("DOMContentLoaded", () => {{
  console.log("{title} loaded");
}});
"""

PYTHON_TEMPLATE = '''\
"""{title}

{description}
"""


def main():
    print("{title}")


if __name__ == "__main__":
    main()
'''

API_TEMPLATE = '''\
"""{title}"""

from fastapi import FastAPI

app = FastAPI(title="{title}")


@app.get("/health")
async def health():
    return {{"status": "ok"}}
'''

SQL_TEMPLATE = """\
-- {title}
-- {description}
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

GENERIC_TEMPLATE = """\
# {title}
# {description}
"""

# (keywords, filename, template); first match wins
_RULES: list[tuple[tuple[str, ...], str, str]] = [
    (("html", "web page", "webpage", "website", "landing", "markup"), "index.html", HTML_TEMPLATE),
    (("css", "style", "styling", "design"), "styles.css", CSS_TEMPLATE),
    (("javascript", " js", "script.js", "frontend", "interactive"), "script.js", JS_TEMPLATE),
    (("api", "endpoint", "server", "backend", "fastapi"), "app.py", API_TEMPLATE),
    (("sql", "database", "schema", "table"), "schema.sql", SQL_TEMPLATE),
    (("python", ".py", "bot", "automation", "command-line"), "main.py", PYTHON_TEMPLATE),
]


@dataclass
class GeneratedCode:
    code: str
    files: dict[str, str]


def generate_code(title: str, description: str) -> GeneratedCode:
    """Derive code from a step's wording. Deterministic for the same input.

    Every matching rule contributes one file; the first file is the step's
    primary code artifact.
    """
    text = f" {title} {description} ".lower()
    files: dict[str, str] = {}
    for keywords, filename, template in _RULES:
        if any(k in text for k in keywords):
            files[filename] = _fill(template, title, description)

    if not files:
        files["notes.txt"] = _fill(GENERIC_TEMPLATE, title, description)

    primary = next(iter(files.values()))
    return GeneratedCode(code=primary, files=files)


def _fill(template: str, title: str, description: str) -> str:
    title = title.strip()
    description = " ".join(description.split())
    if template is HTML_TEMPLATE:
        title, description = html.escape(title), html.escape(description)
    return template.format(title=title, description=description)
