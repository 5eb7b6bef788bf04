"""HTML page shells, one per render method, rendered with kida.

- STATIC: the markup, nothing else.
- BACKEND: the markup plus the live channel script.
- HYBRID: the markup, the live channel script and the client module
  that takes the page over.
- DYNAMIC: an empty body and the client module.

The templates live in ``BUILTIN_TEMPLATES`` and can be overridden by
files of the same name in the app's template directory.
"""

from __future__ import annotations

import json
from html import escape
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from kida import Environment
from kida.template import Markup

from perch.markdown.renderer import Markdown, MarkdownRenderer, default_renderer
from perch.rendering.content import ContentKind
from perch.rendering.markup import SerializeOptions, Serializer, serialize
from perch.rendering.methods import RenderMethod
from perch.rendering.templates import Template, render_template

if TYPE_CHECKING:
    from perch.config import AppConfig
    from perch.context import Context

PAGE_TEMPLATE = "perch/page.html"
ERROR_TEMPLATE = "perch/error.html"

_LIVE_SCRIPT = """\
<script data-perch-live="{{ live_url }}">
(function () {
  var source = new EventSource(document.currentScript.dataset.perchLive);
  source.onmessage = function (event) {
    var space = event.data.indexOf(" ");
    var command = space < 0 ? event.data : event.data.slice(0, space);
    var data = space < 0 ? "" : event.data.slice(space + 1);
    if (command === "RELOAD") {
      source.close();
      window.location.reload();
    } else if (command === "ERROR") {
      console.error("[perch] " + data);
      source.close();
    } else if (command === "UPDATE") {
      var split = data.indexOf(" ");
      var id = data.slice(0, split);
      var value = JSON.parse(data.slice(split + 1));
      document.querySelectorAll('[data-perch-value="' + id + '"]').forEach(function (el) {
        el.textContent = value;
      });
    }
  };
})();
</script>
"""

BUILTIN_TEMPLATES: dict[str, str] = {
    PAGE_TEMPLATE: (
        """\
<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{% if title %}
<title>{{ title }}</title>
{% end %}
{% if frontend_module %}
<script type="module" src="{{ frontend_module }}"></script>
{% end %}
</head>
<body data-perch-render="{{ render_method }}"{% if usid %} data-perch-usid="{{ usid }}"{% end %}>
{{ body }}
{% if live_url %}
"""
        + _LIVE_SCRIPT
        + """\
{% end %}
</body>
</html>
"""
    ),
    ERROR_TEMPLATE: """\
<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
<meta charset="utf-8">
<title>{{ status }} {{ title }}</title>
</head>
<body class="perch-error" data-status="{{ status }}">
<h1>{{ title }}</h1>
<p class="perch-error-message">{{ message }}</p>
</body>
</html>
""",
}


class PageRenderer:
    """Turns resolved content into full HTML documents."""

    __slots__ = ("_markdown", "config", "env", "serializer", "start_id")

    def __init__(
        self,
        env: Environment,
        config: AppConfig,
        *,
        start_id: str = "",
        serializer: Serializer = serialize,
        markdown: MarkdownRenderer | None = None,
    ) -> None:
        self.env = env
        self.config = config
        self.start_id = start_id
        self.serializer = serializer
        self._markdown = markdown

    # -- Content --

    def body_html(self, content: Any, kind: ContentKind, options: SerializeOptions) -> str:
        """HTML for terminal content of the given kind."""
        match kind, content:
            case ContentKind.MARKUP, Template():
                return render_template(self.env, content)
            case ContentKind.MARKUP, _:
                return self.serializer(content, options)
            case ContentKind.TEXT, Markdown():
                return content.to_html(self._markdown or default_renderer())
            case ContentKind.SPECIAL, HTTPStatus():
                return f"<h1>{int(content)} {escape(content.phrase)}</h1>"
            case _:
                return escape(str(content))

    # -- Documents --

    def live_url(self, context: Context | None = None) -> str:
        query: dict[str, str] = {"usid": self.start_id}
        if context is not None and context.observed:
            query["observe"] = json.dumps(sorted(context.observed))
        return f"{self.config.live_path}?{urlencode(query)}"

    def page(
        self,
        body: str,
        method: RenderMethod,
        context: Context | None = None,
        *,
        title: str | None = None,
    ) -> str:
        """Render the page shell for *method* around *body*."""
        live = self.config.live and method is not RenderMethod.STATIC
        client = method in (RenderMethod.HYBRID, RenderMethod.DYNAMIC)
        template = self.env.get_template(PAGE_TEMPLATE)
        return template.render(
            {
                "lang": context.language if context is not None else self.config.default_language,
                "title": title if title is not None else _shared_title(context),
                "body": Markup("" if method is RenderMethod.DYNAMIC else body),
                "render_method": method.value,
                "usid": self.start_id if live else "",
                "live_url": self.live_url(context) if live else "",
                "frontend_module": self.config.frontend_module if client else "",
            }
        )

    def error_page(
        self,
        status: int,
        message: str,
        *,
        title: str | None = None,
        context: Context | None = None,
    ) -> str:
        """Render the error page; *message* is always HTML-escaped."""
        if title is None:
            try:
                title = HTTPStatus(status).phrase
            except ValueError:
                title = "Error"
        template = self.env.get_template(ERROR_TEMPLATE)
        return template.render(
            {
                "lang": context.language if context is not None else self.config.default_language,
                "status": status,
                "title": title,
                "message": Markup(escape(message)),
            }
        )


def _shared_title(context: Context | None) -> str | None:
    if context is None:
        return None
    title = context.shared.get("title")
    return str(title) if title is not None else None
