"""
HTML Changelog Generation Module.

Converts a Markdown changelog to HTML and wraps it in a self-contained page
with a fixed inline stylesheet, suitable for download as a standalone file.
"""

from html import escape

import markdown as markdown_lib

from config import logger

STYLESHEET = """
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif;
      max-width: 800px;
      margin: 0 auto;
      padding: 20px;
      line-height: 1.6;
      color: #333;
    }
    h1 { color: #2563eb; border-bottom: 3px solid #2563eb; padding-bottom: 10px; }
    h2 { color: #1e40af; margin-top: 30px; }
    code { background: #f3f4f6; padding: 2px 6px; border-radius: 3px; }
    a { color: #2563eb; text-decoration: none; }
    a:hover { text-decoration: underline; }
    hr { border: none; border-top: 1px solid #e5e7eb; margin: 30px 0; }
"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>{stylesheet}  </style>
</head>
<body>
{body}
</body>
</html>
"""


def markdown_to_html(markdown_text: str, title: str = "Changelog") -> str:
    """
    Render Markdown into a standalone HTML page.

    Args:
        markdown_text (str): Rule-based or AI-written Markdown changelog.
        title (str): Page title, HTML-escaped.

    Returns:
        str: Complete HTML document.
    """
    body = markdown_lib.markdown(markdown_text, extensions=["sane_lists"])
    html = PAGE_TEMPLATE.format(title=escape(title), stylesheet=STYLESHEET, body=body)
    logger.debug(
        {"message": "HTML conversion completed", "html_length": len(html)}
    )
    return html
