#!/usr/bin/env python3
import argparse
import asyncio
import os
import sys
import traceback

import yaml
from dotenv import load_dotenv

from webqa_casegen import CaseGenService
from webqa_casegen.exceptions import UnsupportedFormatError
from webqa_casegen.exporter import resolve_format
from webqa_casegen.utils import GetLog


CONFIG_CANDIDATES = (
    os.path.join("config", "config.yaml"),
    "config.yaml",
)
PLACEHOLDER_API_KEYS = ("", "your_api_key")


def find_config_file(args_config=None):
    """Return the config path: --config if given, else the first candidate under cwd or the script dir."""
    if args_config:
        if not os.path.isfile(args_config):
            raise FileNotFoundError(f"❌ Specified config file not found: {args_config}")
        return args_config

    roots = [os.getcwd(), os.path.dirname(os.path.abspath(__file__))]
    searched = [os.path.join(root, name) for name in CONFIG_CANDIDATES for root in roots]
    found = next((path for path in searched if os.path.isfile(path)), None)
    if found is None:
        raise FileNotFoundError("❌ Config file not found, searched:\n" + "\n".join(f"   - {p}" for p in searched))
    print(f"✅ Using config file: {found}")
    return found


def load_yaml(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"[ERROR] Cannot read config {path}: {e}", file=sys.stderr)
        sys.exit(1)
    if data is not None and not isinstance(data, dict):
        print(f"[ERROR] Config {path} must be a mapping", file=sys.stderr)
        sys.exit(1)
    return data or {}


def validate_and_build_llm_config(cfg):
    """LLM settings for AI case generation; OPENAI_API_KEY / OPENAI_BASE_URL override the file."""
    raw = cfg.get("llm_config") or {}
    api_key = os.getenv("OPENAI_API_KEY") or raw.get("api_key") or ""
    if api_key in PLACEHOLDER_API_KEYS:
        raise ValueError(
            "❌ generation.use_ai is on but no LLM API key is configured.\n"
            "   Set OPENAI_API_KEY, fill in llm_config.api_key, or turn use_ai off"
        )

    llm_config = {
        "model": raw.get("model", "gpt-4o-mini"),
        "api_key": api_key,
        "base_url": os.getenv("OPENAI_BASE_URL") or raw.get("base_url") or "https://api.openai.com/v1",
        "temperature": raw.get("temperature", 0.1),
    }
    if raw.get("top_p") is not None:
        llm_config["top_p"] = raw["top_p"]

    source = "env" if os.getenv("OPENAI_API_KEY") else "config"
    print(f"✅ AI generation enabled: model={llm_config['model']} base_url={llm_config['base_url']} "
          f"key=***{api_key[-4:]} ({source})")
    return llm_config


def build_browser_config(cfg):
    browser_cfg = dict(cfg.get("browser_config", {}) or {})
    # Containers have no display
    if os.getenv("DOCKER_ENV") == "true" and not browser_cfg.get("headless", True):
        print("⚠️  Docker environment detected, forcing headless mode")
        browser_cfg["headless"] = True
    return browser_cfg


def resolve_target(cfg, args):
    """Return (url, app_description); a --url argument wins over the config file."""
    target = cfg.get("target", {}) or {}
    if args.url:
        return args.url, None
    app_description = target.get("app_description") or {}
    if app_description.get("appId") or app_description.get("app_id"):
        return None, app_description
    return target.get("url", ""), None


def resolve_formats(cfg, args):
    names = [args.format] if args.format else (cfg.get("export", {}) or {}).get("formats") or ["json"]
    return [resolve_format(name, strict=True) for name in names]


async def run(cfg, args):
    url, app_description = resolve_target(cfg, args)
    if not url and not app_description:
        print("[ERROR] No target configured: set target.url, target.app_description.appId or pass --url", file=sys.stderr)
        sys.exit(1)

    generation = cfg.get("generation", {}) or {}
    batch_size = args.batch_size or generation.get("batch_size", 5)
    export_dir = args.output or (cfg.get("export", {}) or {}).get("output_dir", "./reports")

    try:
        formats = resolve_formats(cfg, args)
    except UnsupportedFormatError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        sys.exit(1)

    service = CaseGenService(cfg)
    try:
        if generation.get("mode", "incremental") == "all":
            result = await service.generate_all(url=url, app_description=app_description)
        else:
            result = await service.generate_first(url=url, app_description=app_description)
            while result.success and result.has_more_elements:
                print(f"📄 {result.total_test_cases} test cases so far, next: {result.next_element_type.value}")
                result = service.generate_next(result.session_id, batch_size=batch_size)

        if not result.success:
            print(f"[ERROR] Generation failed ({result.error_type}): {result.error}", file=sys.stderr)
            sys.exit(1)
        if result.note:
            print(f"⚠️  {result.note}")
        print(f"🔢 Total test cases: {result.total_test_cases}")

        os.makedirs(export_dir, exist_ok=True)
        for export_format in formats:
            exported = service.export(result.session_id, export_format)
            if not exported.success:
                print(f"❌ Export as {export_format.value} failed: {exported.error}")
                continue
            path = os.path.join(export_dir, exported.document.filename)
            with open(path, "w", encoding="utf-8") as f:
                f.write(exported.document.body)
            print(f"💾 {export_format.value}: {path}")

        if args.execute or (cfg.get("execution", {}) or {}).get("enabled"):
            report = await service.execute(result.session_id)
            if not report.success:
                print(f"❌ Execution failed ({report.error_type}): {report.error}")
            else:
                path = os.path.join(export_dir, "execution-report.json")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(report.model_dump_json(indent=2))
                print(f"✅ Passed: {report.summary.passed}")
                print(f"❌ Failed: {report.summary.failed}")
                print(f"⏭️  Skipped: {report.summary.skipped}")
                print(f"📊 Pass rate: {report.pass_rate}% in {report.duration}")
                print("Execution report path: ", path)
    except Exception:
        print("Test case generation failed, stack trace:", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)
    finally:
        await service.close()


def parse_args():
    parser = argparse.ArgumentParser(description="WebQA test case generator")
    parser.add_argument("--config", "-c", help="YAML configuration file path (optional, default auto-search config/config.yaml)")
    parser.add_argument("--url", help="Target URL, overrides target.url")
    parser.add_argument("--format", "-f", help="Single export format, overrides export.formats")
    parser.add_argument("--output", "-o", help="Output directory, overrides export.output_dir")
    parser.add_argument("--batch-size", type=int, help="Cases per incremental batch")
    parser.add_argument("--execute", action="store_true", help="Run the generated cases against the live page")
    return parser.parse_args()


def main():
    args = parse_args()

    try:
        config_path = find_config_file(args.config)
        cfg = load_yaml(config_path)
    except FileNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    load_dotenv()
    GetLog.get_log(level=(cfg.get("log", {}) or {}).get("level", "info"))

    cfg["browser_config"] = build_browser_config(cfg)
    if (cfg.get("generation", {}) or {}).get("use_ai"):
        try:
            cfg["llm_config"] = validate_and_build_llm_config(cfg)
        except ValueError as e:
            print(f"[ERROR] {e}", file=sys.stderr)
            sys.exit(1)
    else:
        cfg["llm_config"] = {}

    asyncio.run(run(cfg, args))


if __name__ == "__main__":
    main()
