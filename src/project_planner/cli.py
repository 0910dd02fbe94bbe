from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .catalog.model import TASK_PRIORITIES, TASK_STATUSES, TASK_TYPES
from .config import resolve_settings
from .container import Container
from .logging_utils import configure_logging
from .plan.errors import PlanError
from .plan.model import TaskSequence


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _ctx(args: argparse.Namespace) -> Container:
    settings = resolve_settings(_resolve_project_dir(args.project_dir))
    if getattr(args, 'permissive', False):
        settings = replace(settings, strict_ordering=False)
    return Container(settings.project_dir, settings=settings)


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')


def _project_create(args: argparse.Namespace) -> int:
    project = _ctx(args).catalog.create_project(args.name, args.description or '')
    _emit({'project': project.to_dict()})
    return 0


def _project_list(args: argparse.Namespace) -> int:
    projects = [p.to_dict() for p in _ctx(args).catalog.list_projects()]
    _emit({'projects': projects, 'total': len(projects)})
    return 0


def _project_delete(args: argparse.Namespace) -> int:
    _ctx(args).catalog.delete_project(args.project_id)
    _emit({'deleted': True, 'project_id': args.project_id})
    return 0


def _task_create(args: argparse.Namespace) -> int:
    task = _ctx(args).catalog.create_task(
        args.project_id,
        args.title,
        description=args.description or '',
        status=args.status,
        priority=args.priority,
        task_type=args.task_type,
    )
    _emit({'task': task.to_dict()})
    return 0


def _task_list(args: argparse.Namespace) -> int:
    tasks = [t.to_dict() for t in _ctx(args).catalog.list_tasks(args.project_id)]
    _emit({'tasks': tasks, 'total': len(tasks)})
    return 0


def _task_delete(args: argparse.Namespace) -> int:
    _ctx(args).catalog.delete_task(args.task_id)
    _emit({'deleted': True, 'task_id': args.task_id})
    return 0


def _plan_show(args: argparse.Namespace) -> int:
    _emit(_ctx(args).plans.get_project_plan(args.project_id).to_dict())
    return 0


def _plan_add(args: argparse.Namespace) -> int:
    result = _ctx(args).plans.add_tasks_to_plan(args.project_id, args.task_ids)
    _emit(result.to_dict())
    return 0 if result.failed_count == 0 else 1


def _plan_remove(args: argparse.Namespace) -> int:
    result = _ctx(args).plans.remove_tasks_from_plan(args.project_id, args.task_ids)
    _emit(result.to_dict())
    return 0 if result.failed_count == 0 else 1


def _plan_move(args: argparse.Namespace) -> int:
    previous = _ctx(args).plans.move_task_to_position(args.project_id, args.task_id, args.position)
    _emit({'task_id': args.task_id, 'previous_position': previous, 'position': args.position})
    return 0


def _parse_sequence(raw: str) -> TaskSequence:
    task_id, sep, order = raw.rpartition('=')
    if not sep or not task_id:
        raise argparse.ArgumentTypeError(f"expected TASK_ID=POSITION, got {raw!r}")
    try:
        return TaskSequence(task_id=task_id, sequence_order=int(order))
    except ValueError:
        raise argparse.ArgumentTypeError(f"position must be an integer in {raw!r}") from None


def _plan_reorder(args: argparse.Namespace) -> int:
    container = _ctx(args)
    container.plans.reorder_tasks(args.project_id, args.sequences)
    _emit(container.plans.get_project_plan(args.project_id).to_dict())
    return 0


def _plan_stats(args: argparse.Namespace) -> int:
    _emit(_ctx(args).plans.get_plan_stats(args.project_id).to_dict())
    return 0


def _plan_events(args: argparse.Namespace) -> int:
    events = _ctx(args).plans.get_recent_events(args.project_id, limit=args.limit)
    _emit({'events': events, 'total': len(events)})
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'project-planner[server]'\n")
        return 1

    from .server import create_app

    settings = resolve_settings(_resolve_project_dir(args.project_dir))
    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Project planner: ordered per-project task plans')
    parser.add_argument('--project-dir', default=None, help='Directory holding .project_planner/ (default: current working directory)')
    parser.add_argument('--log-level', default=None, help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the HTTP API server')
    server.add_argument('--host', default=None)
    server.add_argument('--port', default=None, type=int)
    server.set_defaults(func=_server)

    project = subparsers.add_parser('project', help='Manage projects')
    project_sub = project.add_subparsers(dest='project_cmd', required=True)
    pcreate = project_sub.add_parser('create', help='Create a project')
    pcreate.add_argument('name')
    pcreate.add_argument('--description', default='')
    pcreate.set_defaults(func=_project_create)
    plist = project_sub.add_parser('list', help='List projects')
    plist.set_defaults(func=_project_list)
    pdelete = project_sub.add_parser('delete', help='Delete a project with its tasks and plan')
    pdelete.add_argument('project_id')
    pdelete.set_defaults(func=_project_delete)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('project_id')
    tcreate.add_argument('title')
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--status', default='new', choices=TASK_STATUSES)
    tcreate.add_argument('--priority', default='medium', choices=TASK_PRIORITIES)
    tcreate.add_argument('--task-type', default='feature', choices=TASK_TYPES)
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks of a project')
    tlist.add_argument('project_id')
    tlist.set_defaults(func=_task_list)
    tdelete = task_sub.add_parser('delete', help='Delete a task and drop it from its plan')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)

    plan = subparsers.add_parser('plan', help='Inspect and order a project plan')
    plan_sub = plan.add_subparsers(dest='plan_cmd', required=True)
    pshow = plan_sub.add_parser('show', help='Show the ordered plan')
    pshow.add_argument('project_id')
    pshow.set_defaults(func=_plan_show)
    padd = plan_sub.add_parser('add', help='Append tasks to the plan')
    padd.add_argument('project_id')
    padd.add_argument('task_ids', nargs='+')
    padd.set_defaults(func=_plan_add)
    premove = plan_sub.add_parser('remove', help='Remove tasks from the plan')
    premove.add_argument('project_id')
    premove.add_argument('task_ids', nargs='+')
    premove.set_defaults(func=_plan_remove)
    pmove = plan_sub.add_parser('move', help='Move a task to a position')
    pmove.add_argument('project_id')
    pmove.add_argument('task_id')
    pmove.add_argument('position', type=int)
    pmove.add_argument('--permissive', action='store_true', help='Skip the position range check')
    pmove.set_defaults(func=_plan_move)
    preorder = plan_sub.add_parser('reorder', help='Set positions as TASK_ID=POSITION pairs')
    preorder.add_argument('project_id')
    preorder.add_argument('sequences', nargs='+', type=_parse_sequence)
    preorder.add_argument('--permissive', action='store_true', help='Allow a result that is not 1..N')
    preorder.set_defaults(func=_plan_reorder)
    pstats = plan_sub.add_parser('stats', help='Show plan statistics')
    pstats.add_argument('project_id')
    pstats.set_defaults(func=_plan_stats)
    pevents = plan_sub.add_parser('events', help='Show recent plan events')
    pevents.add_argument('project_id')
    pevents.add_argument('--limit', default=20, type=int)
    pevents.set_defaults(func=_plan_events)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    level = args.log_level or resolve_settings(_resolve_project_dir(args.project_dir)).log_level
    configure_logging(level)
    try:
        return int(handler(args) or 0)
    except PlanError as exc:
        logger.debug("Command {} failed: {}", args.command, exc.message)
        sys.stderr.write(json.dumps(exc.to_dict()) + '\n')
        return 2


if __name__ == '__main__':
    sys.exit(main())
