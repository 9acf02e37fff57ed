#!/usr/bin/env python3
"""Bookshelf CLI - catalog search and reading shelves."""
import argparse
import asyncio
import sys
import json
from tabulate import tabulate
from bookshelf.client import GoogleBooksClient
from bookshelf.async_client import AsyncGoogleBooksClient
from bookshelf.collection_store import CollectionStore
from bookshelf.database import Database
from bookshelf.errors import BookshelfError, PartialMoveError
from bookshelf.models import Query
from bookshelf.session import Direction, SearchSession, Status
from bookshelf.config import Config
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def setup_database(config: Config) -> Database:
    """Initialize database."""
    db = Database(config.DATABASE_URL, timeout=config.DB_TIMEOUT)
    db.init_schema()
    return db


def setup_store(db: Database, config: Config) -> CollectionStore:
    """Load both shelves from the database."""
    store = CollectionStore(
        db,
        max_retries=config.DEFAULT_MAX_RETRIES,
        base_backoff=config.DEFAULT_BACKOFF
    )
    store.load()
    return store


async def run_search(args, config: Config):
    """Run a search and walk to the requested page."""
    query = Query(author=args.author, title=args.title)
    page_size = args.page_size or config.DEFAULT_PAGE_SIZE

    if args.sync:
        client = GoogleBooksClient(api_key=config.GOOGLE_BOOKS_API_KEY, timeout=config.DEFAULT_TIMEOUT)
    else:
        client = AsyncGoogleBooksClient(
            api_key=config.GOOGLE_BOOKS_API_KEY,
            timeout=config.DEFAULT_TIMEOUT,
            max_concurrent=config.DEFAULT_MAX_CONCURRENT
        )

    try:
        session = SearchSession(
            client,
            page_size=page_size,
            timeout=config.DEFAULT_TIMEOUT,
            fetch_all_limit=config.FETCH_ALL_LIMIT
        )

        if getattr(args, "all", False):
            state = await session.search_all(query)
        else:
            state = await session.search(query)
            for _ in range(args.page - 1):
                if state.status != Status.READY:
                    break
                state = await session.change_page(Direction.NEXT)

        if state.status == Status.FAILED:
            raise state.error
        return session
    finally:
        if args.sync:
            client.close()
        else:
            await client.close()


def search_books(args, config: Config):
    """Search the catalog and display one page."""
    session = asyncio.run(run_search(args, config))
    page = session.current_page
    pagination = session.pagination

    logger.info(f"Found {page.total_results} books")
    display_books(page.items, args.format)
    if args.format != "json":
        print(f"\nPage {pagination.page_index} of {pagination.page_count()} ({page.total_results} results)")


def pick_result(args, config: Config):
    """Search and return the --pick-th book on the resulting page."""
    session = asyncio.run(run_search(args, config))
    items = session.current_page.items
    if not 1 <= args.pick <= len(items):
        raise BookshelfError(f"--pick must be between 1 and {len(items)}")
    return items[args.pick - 1]


def add_want_to_read(args, config: Config):
    """Add a search result to the want-to-read shelf."""
    book = pick_result(args, config)
    db = setup_database(config)

    try:
        store = setup_store(db, config)
        store.add_to_want_to_read(book)
        print(f"✅ Added to want-to-read: {book.title} - {book.authors_str}")
    finally:
        db.close()


def move_to_read(args, config: Config):
    """Move a search result to the read shelf."""
    book = pick_result(args, config)
    db = setup_database(config)

    try:
        store = setup_store(db, config)
        try:
            moved = store.move_to_read(book)
        except PartialMoveError as e:
            print(f"⚠️  {e}. Run 'reconcile' to finish the move.")
            raise
        print(f"✅ Marked as read: {moved.title} - {moved.authors_str}")
    finally:
        db.close()


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["#", "Title", "Authors", "Year", "Pages", "Publisher"]
        rows = [
            [
                i,
                book.title[:50] + "..." if len(book.title) > 50 else book.title,
                book.authors_str[:30] + "..." if len(book.authors_str) > 30 else book.authors_str,
                book.published_year or "Unknown",
                book.page_count or "N/A",
                (book.publisher or "")[:30]
            ]
            for i, book in enumerate(books, 1)
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        books_dict = [
            {
                "id": book.id,
                "title": book.title,
                "authors": list(book.authors),
                "published_year": book.published_year,
                "description": book.description,
                "page_count": book.page_count,
                "publisher": book.publisher,
                "thumbnail": book.thumbnail
            }
            for book in books
        ]
        print(json.dumps(books_dict, indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.authors_str}")


def list_shelves(args, config: Config):
    """Show both shelves."""
    db = setup_database(config)

    try:
        store = setup_store(db, config)
        for label, books in (("WANT TO READ", store.list_want_to_read()), ("READ", store.list_read())):
            print("\n" + "=" * 50)
            print(f"{label} ({len(books)})")
            print("=" * 50)
            display_books(books, args.format)
    finally:
        db.close()


def show_stats(args, config: Config):
    """Show shelf statistics."""
    db = setup_database(config)

    try:
        stats = db.get_stats()

        print("\n" + "=" * 50)
        print("SHELF STATISTICS")
        print("=" * 50)
        print(f"Want to read: {stats['want_to_read']}")
        print(f"Read: {stats['read_books']}")
        print(f"On both shelves (needs reconcile): {stats['on_both_shelves']}")
        print("=" * 50 + "\n")
    finally:
        db.close()


def reconcile(args, config: Config):
    """Finish moves that left a book on both shelves."""
    db = setup_database(config)

    try:
        store = setup_store(db, config)
        pending = len(store.pending_deletes)
        remaining = store.reconcile()
        print(f"✅ Reconciled {pending - len(remaining)} of {pending} book(s)")
        if remaining:
            print(f"⚠️  Still on both shelves: {', '.join(remaining)}")
    finally:
        db.close()


def init_db(args, config: Config):
    """Create the shelf tables."""
    setup_database(config).close()
    print("✅ Database schema ready")


def add_search_arguments(parser, with_pick: bool = False):
    parser.add_argument("--author", help="Author term")
    parser.add_argument("--title", help="Title term")
    parser.add_argument("--page", type=int, default=1, help="Page to show (default: 1)")
    parser.add_argument("--page-size", type=int, help="Results per page, 1-40")
    parser.add_argument("--sync", action="store_true", help="Use the blocking client")
    if with_pick:
        parser.add_argument("--pick", type=int, default=1, help="Position of the book on the page (default: 1)")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Bookshelf - catalog search and reading shelves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search by author, second page
  %(prog)s search --author "Ursula K. Le Guin" --page 2

  # Gather every match into one ranked list
  %(prog)s search --author Tolkien --title Hobbit --all

  # Shelve the third result
  %(prog)s want --title Dune --pick 3
  %(prog)s read --title Dune --pick 3

  # Show shelves
  %(prog)s list --format compact
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create shelf tables")

    # Search command
    search_parser = subparsers.add_parser("search", help="Search for books")
    add_search_arguments(search_parser)
    search_parser.add_argument("--all", action="store_true", help="Fetch every page into one ranked list")
    search_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    want_parser = subparsers.add_parser("want", help="Add a search result to want-to-read")
    add_search_arguments(want_parser, with_pick=True)

    read_parser = subparsers.add_parser("read", help="Move a search result to read")
    add_search_arguments(read_parser, with_pick=True)

    list_parser = subparsers.add_parser("list", help="Show both shelves")
    list_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    subparsers.add_parser("stats", help="Show shelf statistics")
    subparsers.add_parser("reconcile", help="Repair books left on both shelves")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    commands = {
        "init-db": init_db,
        "search": search_books,
        "want": add_want_to_read,
        "read": move_to_read,
        "list": list_shelves,
        "stats": show_stats,
        "reconcile": reconcile,
    }

    try:
        commands[args.command](args, config)

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except BookshelfError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
