"""Command-line interface for affair discovery and review."""

import sys
import json
import logging
import argparse
from typing import List, Optional

from .config import ConfigManager
from .duplicate_review import DuplicateReviewer
from .duplicate_scan import DuplicateScanner
from .logging_config import setup_logging
from .models import Config, Subject
from .pipeline import AffairDiscoveryPipeline
from .repositories import SQLiteAffairRepository
from .similarity_scoring import SimilarityScorer


def _load_config(args) -> Config:
    config = ConfigManager(config_path=getattr(args, "config", None)).load()
    if getattr(args, "db", None):
        config.storage.db_path = args.db
    return config


def _open_repository(args, config: Optional[Config] = None) -> SQLiteAffairRepository:
    config = config or _load_config(args)
    return SQLiteAffairRepository(config.storage.db_path)


def run_discovery(args):
    """Run the discovery pipeline over stored subjects."""
    manager = ConfigManager(config_path=args.config)
    config = manager.load()
    if args.db:
        config.storage.db_path = args.db

    if args.verbose:
        config.pipeline.verbose = True
    if config.pipeline.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    with_text = not args.structured_only
    manager.validate(require_ai=with_text)

    repository = SQLiteAffairRepository(config.storage.db_path)
    subjects = repository.list_subjects(limit=args.limit, name_filter=args.politician)
    print(f"👥 {len(subjects)} politician(s) selected")

    dry_run = args.dry_run or config.pipeline.dry_run
    if dry_run:
        print("🔍 DRY RUN MODE - Nothing will be written")

    pipeline = AffairDiscoveryPipeline.from_config(
        config,
        repository,
        with_structured=not args.text_only,
        with_text=with_text,
    )
    result = pipeline.run(
        subjects,
        structured_only=args.structured_only,
        text_only=args.text_only,
        dry_run=dry_run,
    )

    print("\n✅ Discovery complete:")
    print(f"   Politicians processed: {result.subjects_processed}")
    print(f"   Structured candidates: {result.structured_candidates_found}")
    print(f"   Text candidates:       {result.text_candidates_found}")
    print(f"   Duplicates skipped:    {result.duplicates_skipped}")
    print(
        f"   Affairs created:       {result.affairs_created} "
        f"({result.affairs_published} published, {result.affairs_draft} draft)"
    )
    if result.processing_time is not None:
        print(f"   Time: {result.processing_time:.2f}s")

    if result.errors:
        print(f"\n⚠️  {len(result.errors)} error(s):")
        for error in result.errors[:20]:
            print(f"   - {error}")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        print(f"💾 Results saved to: {args.output}")

    return 0 if result.success else 1


def find_duplicates(args):
    """Print the duplicate scan of one politician as JSON."""
    config = _load_config(args)
    repository = _open_repository(args, config)
    scanner = DuplicateScanner(SimilarityScorer(config.scoring))
    result = scanner.scan_subject(repository, args.subject_id)
    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return 0


def _open_reviewer(args) -> DuplicateReviewer:
    config = _load_config(args)
    repository = _open_repository(args, config)
    return DuplicateReviewer(repository, DuplicateScanner(SimilarityScorer(config.scoring)))


def merge_affairs(args):
    """Fold one affair into another."""
    result = _open_reviewer(args).merge(args.keep_id, args.remove_id)
    print(f"🔀 Merged {result.removed_id} into {result.kept.id}")
    print(f"   Sources moved: {result.sources_moved}")
    if result.identifiers_merged:
        print(f"   Identifiers copied: {', '.join(result.identifiers_merged)}")
    return 0


def dismiss_duplicate(args):
    """Mark a pair of affairs as distinct."""
    _open_reviewer(args).dismiss(args.affair_id_a, args.affair_id_b)
    print(f"✅ Pair {args.affair_id_a} / {args.affair_id_b} will no longer be proposed")
    return 0


def review_duplicates(args):
    """List duplicates across the store, optionally merging the certain ones."""
    reviewer = _open_reviewer(args)

    if args.stats:
        stats = reviewer.stats()
        print("📊 Duplicate review:")
        print(f"   Unverified affairs: {stats.unverified}")
        print(f"   Potential duplicates: {stats.duplicates}")
        for confidence, count in stats.by_confidence.items():
            print(f"     {confidence}: {count}")
        print(f"   Dismissed pairs: {stats.dismissed}")
        return 0

    groups = reviewer.find_duplicates()
    if not groups:
        print("✅ No potential duplicates")
        return 0

    print(f"🔍 {len(groups)} potential duplicate(s):")
    for index, group in enumerate(groups, 1):
        first, second = group.affairs
        confidence = group.confidence.value if group.confidence else "-"
        print(f"\n{index}. [{confidence}] {group.score} - {', '.join(group.reasons)}")
        print(f"   A: {first.title} ({first.id}, {first.source_count} source(s))")
        print(f"   B: {second.title} ({second.id}, {second.source_count} source(s))")

    if not args.auto_merge:
        return 0

    if args.dry_run:
        print("\n🔍 DRY RUN MODE - Nothing will be written")
    result = reviewer.auto_merge(dry_run=args.dry_run)
    print(
        f"\n🔀 Merged: {result.merged}, skipped: {result.skipped}, "
        f"errors: {len(result.errors)}"
    )
    for error in result.errors:
        print(f"   - {error}")
    if result.remaining_possible:
        print(f"   {result.remaining_possible} POSSIBLE pair(s) left for manual review")
    return 0 if not result.errors else 1


def show_stats(args):
    """Print store counters."""
    stats = _open_repository(args).get_stats()
    print("📊 Affair store:")
    for key, value in stats.items():
        print(f"   {key.capitalize()}: {value}")
    return 0


def add_subject(args):
    """Register a politician to process."""
    repository = _open_repository(args)
    subject = repository.add_subject(
        Subject(id=args.subject_id, full_name=args.name, external_id=args.qid)
    )
    print(f"✅ Saved {subject.full_name} ({subject.id})")
    return 0


def generate_config(args):
    """Write a configuration template."""
    ConfigManager(load_env_file=False).save_template(args.output)
    print(f"✅ Configuration template saved to: {args.output}")
    print("Please update it with your actual API key.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="poligraph",
        description="Discover judicial affairs of French politicians and reconcile them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Register a politician with their Wikidata Q-ID
  poligraph add-subject p-1 "Jean Dupont" --qid Q123

  # Preview a discovery run on 10 politicians
  poligraph discover --limit 10 --dry-run

  # Knowledge-graph phase only
  poligraph discover --structured-only

  # Review likely duplicates of one politician
  poligraph duplicates p-1

  # Merge the certain duplicates of every politician
  poligraph reconcile --auto-merge
""",
    )
    parser.add_argument("--log-format", choices=["json", "text"], default="text")
    parser.add_argument("--log-file", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    discover = subparsers.add_parser("discover", help="Run the affair discovery pipeline")
    discover.add_argument("-c", "--config", help="Path to configuration file")
    discover.add_argument("--db", help="SQLite database path")
    discover.add_argument("--dry-run", action="store_true", help="Preview without writing")
    discover.add_argument("--limit", type=int, help="Process at most N politicians")
    discover.add_argument("--politician", help="Only politicians whose name contains this")
    phase = discover.add_mutually_exclusive_group()
    phase.add_argument("--structured-only", action="store_true", help="Wikidata phase only")
    phase.add_argument("--text-only", action="store_true", help="Wikipedia phase only")
    discover.add_argument("-o", "--output", help="Save the run summary as JSON")
    discover.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    duplicates = subparsers.add_parser("duplicates", help="Scan a politician's affairs for duplicates")
    duplicates.add_argument("subject_id", help="Politician id")
    duplicates.add_argument("-c", "--config", help="Path to configuration file")
    duplicates.add_argument("--db", help="SQLite database path")

    merge = subparsers.add_parser("merge", help="Merge a duplicate into the affair to keep")
    merge.add_argument("keep_id", help="Affair kept")
    merge.add_argument("remove_id", help="Affair folded in and deleted")
    merge.add_argument("-c", "--config", help="Path to configuration file")
    merge.add_argument("--db", help="SQLite database path")

    dismiss = subparsers.add_parser("dismiss", help="Mark two affairs as not duplicates")
    dismiss.add_argument("affair_id_a", help="First affair id")
    dismiss.add_argument("affair_id_b", help="Second affair id")
    dismiss.add_argument("-c", "--config", help="Path to configuration file")
    dismiss.add_argument("--db", help="SQLite database path")

    review = subparsers.add_parser("reconcile", help="Review duplicates across all politicians")
    review.add_argument("--auto-merge", action="store_true", help="Merge CERTAIN and HIGH pairs")
    review.add_argument("--dry-run", action="store_true", help="Preview merges without writing")
    review.add_argument("--stats", action="store_true", help="Only print review counters")
    review.add_argument("-c", "--config", help="Path to configuration file")
    review.add_argument("--db", help="SQLite database path")

    stats = subparsers.add_parser("stats", help="Show store counters")
    stats.add_argument("-c", "--config", help="Path to configuration file")
    stats.add_argument("--db", help="SQLite database path")

    subject = subparsers.add_parser("add-subject", help="Register a politician")
    subject.add_argument("subject_id", help="Politician id")
    subject.add_argument("name", help="Full name, as titled on French Wikipedia")
    subject.add_argument("--qid", help="Wikidata Q-ID")
    subject.add_argument("-c", "--config", help="Path to configuration file")
    subject.add_argument("--db", help="SQLite database path")

    init_config = subparsers.add_parser("init-config", help="Generate configuration template")
    init_config.add_argument("output", help="Where to write the template")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    verbose = getattr(args, "verbose", False)
    setup_logging(
        format=args.log_format,
        level="DEBUG" if verbose else "INFO",
        log_file=args.log_file,
    )

    commands = {
        "discover": run_discovery,
        "duplicates": find_duplicates,
        "merge": merge_affairs,
        "dismiss": dismiss_duplicate,
        "reconcile": review_duplicates,
        "stats": show_stats,
        "add-subject": add_subject,
        "init-config": generate_config,
    }

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
        return 1
    except Exception as e:
        print(f"\n❌ Error: {e}")
        if verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
