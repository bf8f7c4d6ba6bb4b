"""
EC CSR generator: CLI entry point.

Usage:
  python main.py --once                          # CSRs for SUBJECTS from .env
  python main.py --once --subjects a.com b.com   # Override subjects for this run
  python main.py --once --curve secp256r1        # Override EC_CURVE for this run
"""
from __future__ import annotations

import argparse
import logging
import sys

import structlog

# ── Logging setup ─────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)
log = logging.getLogger(__name__)
events = structlog.get_logger("ec-csr")


def configure_logging(level: str) -> None:
    numeric = getattr(logging, level, logging.INFO)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric))
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Runner ────────────────────────────────────────────────────────────────────


def issue_csr(
    subject: str,
    curve_name: str | None,
    cache_store_path: str,
    csr_output_path: str,
    san: bool = True,
) -> str:
    """
    Produce and store a CSR for one subject, reusing its cached key if valid.

    Returns the path of the written CSR.  Raises CsrError subclasses on fatal
    key failures and ValueError for subjects that cannot form a CN.
    """
    from csr.plugin import EcCsrPlugin, common_name
    from storage import keycache

    cached = keycache.read_cache_text(cache_store_path, subject)

    with EcCsrPlugin(curve_name=curve_name, cache_data=cached) as plugin:
        request = plugin.generate_csr(common_name(subject))
        csr_pem = request.to_pem([subject] if san else None)

        if plugin.cache_data != cached:
            key_path = keycache.write_cache_text(cache_store_path, subject, plugin.cache_data)
            log.info("Key cache written to %s", key_path)

    csr_path = keycache.write_csr(csr_output_path, subject, csr_pem)
    log.info("CSR for %s written to %s", subject, csr_path)
    return str(csr_path)


def run_once(subjects: list[str] | None = None, curve_name: str | None = None) -> dict:
    """Generate CSRs for every subject; one failure does not stop the others."""
    from config import settings

    effective_subjects = subjects or settings.SUBJECTS
    if not effective_subjects:
        log.error("No subjects configured. Set SUBJECTS in .env or pass --subjects.")
        sys.exit(1)

    curve = curve_name if curve_name is not None else settings.EC_CURVE
    log.info("Generating CSRs for %d subject(s): %s",
             len(effective_subjects), ", ".join(effective_subjects))

    completed: list[str] = []
    failed: list[str] = []
    for subject in effective_subjects:
        try:
            issue_csr(
                subject,
                curve_name=curve,
                cache_store_path=settings.CACHE_STORE_PATH,
                csr_output_path=settings.CSR_OUTPUT_PATH,
                san=settings.SAN_DOMAINS,
            )
        except Exception as exc:
            log.exception("CSR generation failed for %s: %s", subject, exc)
            failed.append(subject)
        else:
            completed.append(subject)

    log.info("Run complete — generated: %s | failed: %s", completed or "none", failed or "none")
    events.info("csr_run_complete", completed=len(completed), failed=len(failed))
    return {"completed": completed, "failed": failed}


# ── CLI ───────────────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(
        description="EC key and CSR generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --once
  python main.py --once --subjects api.example.com shop.example.com
  python main.py --once --curve secp256r1
        """,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Generate CSRs for all subjects and exit",
    )
    parser.add_argument(
        "--subjects",
        nargs="+",
        metavar="CN",
        help="Override SUBJECTS for this run",
    )
    parser.add_argument(
        "--curve",
        metavar="NAME",
        help="Override EC_CURVE for this run (falls back to secp384r1 if unknown)",
    )

    args = parser.parse_args()

    if not args.once:
        parser.print_help()
        sys.exit(1)

    from config import settings

    configure_logging(settings.LOG_LEVEL)
    result = run_once(subjects=args.subjects, curve_name=args.curve)
    if result["failed"]:
        sys.exit(2)


if __name__ == "__main__":
    main()
