"""Render test cases into downstream tool formats.

Every renderer is a pure function of page metadata and the case list. An
unknown format name falls back to JSON so export is always available.
"""
import csv
import datetime
import io
import json
import logging
import re
import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union
from xml.sax.saxutils import escape as xml_escape

import yaml
from jinja2 import Environment

from webqa_casegen.data.test_structures import (ExportDocument, ExportFormat,
                                                PageSnapshot, TestCase)
from webqa_casegen.exceptions import UnsupportedFormatError
from webqa_casegen.exporter.action_parser import DEFAULT_INPUT_VALUE
from webqa_casegen.exporter.step_intent import IntentKind, resolve_step_intent

FORMAT_FILES: Dict[ExportFormat, Tuple[str, str]] = {
    ExportFormat.JSON: ("test-cases.json", "application/json"),
    ExportFormat.MAESTRO: ("maestro-flow.yaml", "application/yaml"),
    ExportFormat.KATALON: ("katalon-tests.tc", "application/octet-stream"),
    ExportFormat.TESTRAIL: ("testrail-import.csv", "text/csv"),
    ExportFormat.CSV: ("test-cases.csv", "text/csv"),
    ExportFormat.HTML: ("test-cases.html", "text/html"),
    ExportFormat.TXT: ("test-cases.txt", "text/plain"),
}

CSV_HEADER = "Title,Type,Priority,Preconditions,Steps,Expected Result,References"

Page = Union[PageSnapshot, Mapping[str, Any]]


def _page_meta(page: Page) -> Tuple[str, str]:
    if isinstance(page, PageSnapshot):
        return page.url, page.title
    page = page or {}
    return str(page.get("url") or ""), str(page.get("title") or "")


def _timestamp(generated_at: Optional[datetime.datetime]) -> str:
    return (generated_at or datetime.datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def resolve_format(fmt: Union[ExportFormat, str, None], strict: bool = False) -> ExportFormat:
    """Map a format name to :class:`ExportFormat`.

    Unknown names resolve to JSON, or raise UnsupportedFormatError when ``strict``.
    """
    if isinstance(fmt, ExportFormat):
        return fmt
    try:
        return ExportFormat(str(fmt or "json").strip().lower())
    except ValueError:
        if strict:
            raise UnsupportedFormatError(f"Unsupported export format: {fmt}")
        logging.warning(f"Unknown export format '{fmt}', falling back to json")
        return ExportFormat.JSON


# ============================================================================
# JSON
# ============================================================================

def render_json(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    return json.dumps([case.to_export_dict() for case in cases], indent=2, ensure_ascii=False)


# ============================================================================
# MAESTRO
# ============================================================================

def _yaml_quote(text: str) -> str:
    # One double-quoted scalar; dumped as a single-item list so PyYAML emits no document markers.
    dumped = yaml.safe_dump([text.replace("\n", " ")], default_style='"', allow_unicode=True, width=float("inf"))
    return dumped[2:].rstrip("\n")


def maestro_app_id(url: str) -> str:
    return re.sub(r"^https?://", "", url).rstrip("/")


def render_maestro(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    url, title = _page_meta(page)
    if isinstance(page, PageSnapshot) and page.is_mobile:
        preamble = [f"appId: {url}", "---", "- launchApp"]
    else:
        preamble = [f"appId: {maestro_app_id(url)}", "---", f"- launchUrl: {url}"]
    lines = preamble + [f"- assertVisible: {_yaml_quote(title)}", ""]

    for position, case in enumerate(cases):
        lines.append(f"# {case.title}".replace("\n", " "))
        for step in case.steps:
            intent = resolve_step_intent(step)
            if intent.kind == IntentKind.NAVIGATE:
                # Only one app launch per flow; same-page navigation is covered by the preamble.
                if step.step == 1 and position > 0:
                    continue
                if intent.target and intent.target.rstrip("/") != url.rstrip("/"):
                    lines.append(f"- openLink: {_yaml_quote(intent.target)}")
            elif intent.kind == IntentKind.CLICK:
                lines.append(f"- tapOn: {_yaml_quote(intent.target or 'element')}")
            elif intent.kind == IntentKind.INPUT:
                lines.append(f"- inputText: {_yaml_quote(intent.value or DEFAULT_INPUT_VALUE)}")
                lines.append(f"  into: {_yaml_quote(intent.target or 'input_field')}")
            elif intent.kind == IntentKind.VERIFY:
                lines.append(f"- assertVisible: {_yaml_quote(intent.text or '')}")
        lines.append("")

    return "\n".join(lines) + "\n"


# ============================================================================
# KATALON
# ============================================================================

KATALON_IMPORTS = (
    "import static com.kms.katalon.core.testobject.ObjectRepository.findTestObject\n"
    "import com.kms.katalon.core.webui.keyword.WebUiBuiltInKeywords as WebUI\n"
)


def _groovy_quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace("'", "\\'")


def _groovy_comment(text: str) -> str:
    return text.replace("\n", " ")


def katalon_entity(case: TestCase, guid: Optional[str] = None) -> str:
    guid = guid or str(uuid.uuid4())
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<TestCaseEntity>",
        f"   <name>{xml_escape(case.id)}</name>",
        "   <tag></tag>",
        f"   <comment>{xml_escape(case.description)}</comment>",
        f"   <testCaseGuid>{guid}</testCaseGuid>",
    ]
    if "Form" in case.title or "Input" in case.title:
        parts += [
            "   <variable>",
            "      <name>testValue</name>",
            "      <value>sample_value</value>",
            "   </variable>",
        ]
    parts.append("</TestCaseEntity>")
    return "\n".join(parts) + "\n\n"


def katalon_script(case: TestCase, base_url: str) -> str:
    script = [KATALON_IMPORTS, f"// {_groovy_comment(case.title)}", f"// {_groovy_comment(case.description)}", ""]
    for step in case.steps:
        intent = resolve_step_intent(step)
        if intent.kind == IntentKind.NONE:
            continue
        script.append(f"// Step {step.step}: {_groovy_comment(step.action)}")
        if intent.kind == IntentKind.NAVIGATE:
            script.append(f"WebUI.openBrowser('{_groovy_quote(intent.target or base_url)}')")
            script.append("WebUI.maximizeWindow()")
        elif intent.kind == IntentKind.CLICK:
            script.append(f"WebUI.click(findTestObject('Object Repository/{_groovy_quote(intent.target or 'element')}'))")
        elif intent.kind == IntentKind.INPUT:
            field = _groovy_quote(intent.target or "input_field")
            value = _groovy_quote(intent.value or DEFAULT_INPUT_VALUE)
            script.append(f"WebUI.setText(findTestObject('Object Repository/{field}'), '{value}')")
        elif intent.kind == IntentKind.VERIFY:
            script.append(f"WebUI.verifyTextPresent('{_groovy_quote(intent.text or '')}', false)")
        script.append("")
    script.append("// Close browser\nWebUI.closeBrowser()\n")
    return "\n".join(script)


def render_katalon(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    url, _ = _page_meta(page)
    return "".join(katalon_entity(case) + katalon_script(case, url) for case in cases)


# ============================================================================
# CSV / TESTRAIL
# ============================================================================

def _numbered(steps, attribute: str) -> str:
    return "\n".join(f"{step.step}. {getattr(step, attribute)}" for step in steps)


def render_csv(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    buffer = io.StringIO()
    buffer.write(CSV_HEADER + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for case in cases:
        writer.writerow([
            case.title,
            "Functional",
            case.priority.value,
            "None",
            _numbered(case.steps, "action"),
            _numbered(case.steps, "expected"),
            case.id,
        ])
    return buffer.getvalue()


# ============================================================================
# HTML / TEXT
# ============================================================================

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Test Cases for {{ title }}</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 0; padding: 20px; }
    h1 { color: #333; }
    .test-case { border: 1px solid #ddd; margin-bottom: 20px; padding: 15px; border-radius: 5px; }
    .test-case h2 { margin-top: 0; color: #0066cc; }
    .test-case p { margin: 5px 0; }
    .priority-High { background-color: #ffe6e6; }
    .priority-Medium { background-color: #e6f2ff; }
    .priority-Low { background-color: #e6ffe6; }
    table { width: 100%; border-collapse: collapse; margin-top: 10px; }
    th, td { padding: 8px; text-align: left; border: 1px solid #ddd; }
    th { background-color: #f2f2f2; }
  </style>
</head>
<body>
  <h1>Test Cases for {{ title }}</h1>
  <p>URL: {{ url }}</p>
  <p>Generated: {{ generated }}</p>

  <div class="test-cases">
  {%- for case in cases %}
    <div class="test-case priority-{{ case.priority.value }}">
      <h2>{{ case.title }}</h2>
      <p><strong>ID:</strong> {{ case.id }}</p>
      <p><strong>Description:</strong> {{ case.description }}</p>
      <p><strong>Priority:</strong> {{ case.priority.value }}</p>
      {%- if case.steps %}

      <h3>Test Steps:</h3>
      <table>
        <thead>
          <tr>
            <th>Step</th>
            <th>Action</th>
            <th>Expected Result</th>
          </tr>
        </thead>
        <tbody>
        {%- for step in case.steps %}
          <tr>
            <td>{{ step.step }}</td>
            <td>{{ step.action }}</td>
            <td>{{ step.expected }}</td>
          </tr>
        {%- endfor %}
        </tbody>
      </table>
      {%- endif %}
    </div>
  {%- endfor %}
  </div>
</body>
</html>
"""

_jinja_env = Environment(autoescape=True)
_html_template = _jinja_env.from_string(HTML_TEMPLATE)


def render_html(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    url, title = _page_meta(page)
    return _html_template.render(title=title, url=url, generated=_timestamp(generated_at), cases=cases)


def render_text(page: Page, cases: Sequence[TestCase], generated_at=None) -> str:
    url, title = _page_meta(page)
    text = [f"TEST CASES FOR {title.upper()}", f"URL: {url}", f"Generated: {_timestamp(generated_at)}", ""]
    for case in cases:
        text += [
            f"ID: {case.id}",
            f"TITLE: {case.title}",
            f"DESCRIPTION: {case.description}",
            f"PRIORITY: {case.priority.value}",
            "",
            "TEST STEPS:",
        ]
        for step in case.steps:
            text += [f"{step.step}. {step.action}", f"   Expected: {step.expected}", ""]
        text += ["----------------------------", ""]
    return "\n".join(text) + "\n"


RENDERERS: Dict[ExportFormat, Callable[..., str]] = {
    ExportFormat.JSON: render_json,
    ExportFormat.MAESTRO: render_maestro,
    ExportFormat.KATALON: render_katalon,
    ExportFormat.TESTRAIL: render_csv,
    ExportFormat.CSV: render_csv,
    ExportFormat.HTML: render_html,
    ExportFormat.TXT: render_text,
}


def render(fmt: Union[ExportFormat, str, None], page: Page, cases: Sequence[TestCase],
           generated_at: Optional[datetime.datetime] = None) -> ExportDocument:
    """Render ``cases`` as an export document.

    Args:
        fmt: Format name or :class:`ExportFormat`; unknown names render JSON.
        page: The snapshot, or any mapping with ``url`` and ``title``.
        cases: Test cases in export order.
        generated_at: Timestamp for the HTML/text headers; defaults to now.

    Returns:
        ExportDocument with the body, filename and content type.
    """
    export_format = resolve_format(fmt)
    filename, content_type = FORMAT_FILES[export_format]
    body = RENDERERS[export_format](page, list(cases), generated_at)
    logging.debug(f"Rendered {len(cases)} test cases as {export_format.value} ({len(body)} chars)")
    return ExportDocument(format=export_format, filename=filename, content_type=content_type, body=body)
