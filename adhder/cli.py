#!/usr/bin/env python3
"""
ADHDer Command Line Interface

Main entry point for the `adhder` command.

Usage:
    adhder serve --port 8080                 # Start the task API
    adhder tasks --query "status=active"     # Grouped task list from the API
    adhder tasks --done <task-id>            # Mark a task done
    adhder views                             # List saved views
    adhder views --add "Deep work" --query "priority=high"
    adhder views --delete <view-id>
    adhder views --sort due_date             # Persist the sort mode
    adhder recurrence --frequency weekly --due 2026-03-02
    adhder split --title "Do taxes and file receipts" --minutes 90
    adhder --version
"""

import argparse
import asyncio
import json
import sys

from . import __version__
from .config import load_config, resolve_path
from .errors import AdhderError, ApiError


def _emit(result: dict) -> int:
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("success") else 1


def cmd_serve(args):
    """Handle serve subcommand."""
    import uvicorn

    from .logging_config import setup_logging

    config = load_config()
    setup_logging(config)
    server = config.get("server", {})
    host = args.host or server.get("host", "127.0.0.1")
    port = args.port or server.get("port", 8080)

    print(f"Starting ADHDer task API at http://{host}:{port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "adhder.dashboard.backend.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )
    return 0


async def _run_tasks(args, config: dict) -> dict:
    from .tasks.client import TasksApiClient
    from .tasks.filters import search_params_to_filters
    from .tasks.grouping import non_empty_groups
    from .tasks.optimistic import OptimisticTaskList
    from .tasks.views import LocalStateStore, load_sort_mode

    api_config = config.get("api", {})
    async with TasksApiClient(api_config.get("base_url"), token=api_config.get("token")) as api:
        task_list = OptimisticTaskList(api)
        await task_list.load()

        if args.done or args.drop:
            task_id = args.done or args.drop
            mutation = await (task_list.toggle_done(task_id, True) if args.done else task_list.drop(task_id))
            if not mutation.ok:
                return {"success": False, "error": mutation.error}
            data = {"task": task_list.get(task_id).to_dict()}
            if mutation.next_occurrence is not None:
                data["next_occurrence"] = mutation.next_occurrence.to_dict()
            return {"success": True, "data": data}

        store = LocalStateStore(resolve_path(config["client"]["state_path"]))
        sort_mode = args.sort or load_sort_mode(store)
        groups = task_list.grouped(search_params_to_filters(args.query or ""), sort_mode=sort_mode)
        return {
            "success": True,
            "data": [
                {"label": g.label, "count": len(g.tasks), "tasks": [t.title for t in g.tasks]}
                for g in non_empty_groups(groups)
            ],
        }


def cmd_tasks(args):
    """List grouped tasks, or complete / drop one."""
    try:
        result = asyncio.run(_run_tasks(args, load_config()))
    except ApiError as e:
        result = {"success": False, "error": e.message, "code": e.code}
    except AdhderError as e:
        result = {"success": False, "error": str(e)}
    return _emit(result)


def cmd_views(args):
    """Manage saved views and the sort mode in local client state."""
    from .tasks.filters import search_params_to_filters
    from .tasks.views import (
        LocalStateStore,
        add_saved_view,
        all_views,
        delete_saved_view,
        load_saved_views,
        load_sort_mode,
        save_saved_views,
        save_sort_mode,
    )

    config = load_config()
    store = LocalStateStore(resolve_path(config["client"]["state_path"]))
    views = load_saved_views(store)

    try:
        if args.add:
            max_count = int(config.get("views", {}).get("max_custom_views", 10))
            views = add_saved_view(views, args.add, search_params_to_filters(args.query or ""), max_count=max_count)
            save_saved_views(store, views)
        elif args.delete:
            views = delete_saved_view(views, args.delete)
            save_saved_views(store, views)
        if args.sort:
            save_sort_mode(store, args.sort)
    except (AdhderError, ValueError) as e:
        return _emit({"success": False, "error": str(e)})

    return _emit({
        "success": True,
        "data": {
            "sort_mode": load_sort_mode(store),
            "views": [v.to_dict() for v in all_views(views)],
        },
    })


def cmd_recurrence(args):
    from .tasks.recurrence import recurrence_result

    return _emit(recurrence_result(args))


def cmd_split(args):
    from .tasks.renegotiation import split_result

    return _emit(split_result(args.title, args.minutes))


def main():
    """Main CLI entry point."""
    from .tasks import SORT_MODES
    from .tasks.recurrence import add_recurrence_arguments

    parser = argparse.ArgumentParser(
        prog="adhder",
        description="ADHDer - shame-safe task tracking",
    )
    parser.add_argument("--version", "-V", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the task API server")
    serve_parser.add_argument("--host", help="Host to bind to (default from config)")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default from config)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    serve_parser.set_defaults(func=cmd_serve)

    tasks_parser = subparsers.add_parser("tasks", help="Grouped task list from the API")
    tasks_parser.add_argument("--query", help='Filter query string, e.g. "status=active&due=today"')
    tasks_parser.add_argument("--sort", choices=SORT_MODES, help="Sort mode for this listing")
    tasks_action = tasks_parser.add_mutually_exclusive_group()
    tasks_action.add_argument("--done", metavar="TASK_ID", help="Mark a task done")
    tasks_action.add_argument("--drop", metavar="TASK_ID", help="Drop a task")
    tasks_parser.set_defaults(func=cmd_tasks)

    views_parser = subparsers.add_parser("views", help="Saved views and sort mode")
    views_action = views_parser.add_mutually_exclusive_group()
    views_action.add_argument("--add", metavar="NAME", help="Save the --query filters as a view")
    views_action.add_argument("--delete", metavar="VIEW_ID", help="Delete a saved view")
    views_parser.add_argument("--query", help="Filter query string for --add")
    views_parser.add_argument("--sort", choices=SORT_MODES, help="Persist a sort mode")
    views_parser.set_defaults(func=cmd_views)

    recurrence_parser = subparsers.add_parser("recurrence", help="Next occurrence of a recurring task")
    add_recurrence_arguments(recurrence_parser)
    recurrence_parser.set_defaults(func=cmd_recurrence)

    split_parser = subparsers.add_parser("split", help="Suggest how to split a task")
    split_parser.add_argument("--title", required=True, help="Task title")
    split_parser.add_argument("--minutes", type=int, help="Estimated minutes")
    split_parser.set_defaults(func=cmd_split)

    args = parser.parse_args()

    if args.version:
        print(f"ADHDer version {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main() or 0)
