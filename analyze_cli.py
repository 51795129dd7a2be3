import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from veritas.analyzer import CredibilityAnalyzer
from veritas.failover import FailoverController
from veritas.gemini_utils import GeminiClient, create_http_client
from veritas.models import AnalysisReport
from veritas.settings import load_settings
from veritas.utils import ApiException, setup_logging

setup_logging() # Use logging config from main app
logger = logging.getLogger(__name__)


def read_input_text(text: Optional[str], file_path: Optional[str]) -> Optional[str]:
    """Text from --text, else the contents of --file, else None."""
    if text:
        return text
    if file_path:
        with open(file_path, "r", encoding="utf-8") as f:
            return f.read()
    return None


async def run_analysis(text: Optional[str], url: Optional[str], analysis_types: Optional[List[str]]) -> AnalysisReport:
    settings = load_settings()
    async with create_http_client(settings) as http_client:
        failover = FailoverController(GeminiClient(settings, http_client), settings.endpoints)
        analyzer = CredibilityAnalyzer(settings, failover)
        if url:
            return await analyzer.analyze_url(url, http_client)
        return await analyzer.analyze(text, analysis_types)


def main():
    parser = argparse.ArgumentParser(description="Check the credibility of a text or web page with Gemini.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Text to analyze.")
    source.add_argument("--file", help="Path to a UTF-8 text file to analyze.")
    source.add_argument("--url", help="Web page to extract and analyze.")
    parser.add_argument("--types", nargs='+', default=None,
                        help="Analysis types to run (space-separated). All types when omitted; ignored with --url.")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation of the printed report.")

    args = parser.parse_args()

    try:
        text = read_input_text(args.text, args.file)
    except OSError as e:
        logger.error(f"Could not read input file {args.file}: {e}")
        sys.exit(1)

    try:
        report = asyncio.run(run_analysis(text, args.url, args.types))
    except ApiException as e:
        logger.error(f"Analysis rejected: {e}")
        print(json.dumps({"success": False, "message": str(e)}, indent=args.indent))
        sys.exit(2)

    print(json.dumps({"success": True, "data": report.model_dump(mode="json", by_alias=True)}, indent=args.indent))


if __name__ == "__main__":
    main()
