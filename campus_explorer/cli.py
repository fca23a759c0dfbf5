"""Command-line interface for campus_explorer.

Run:
    python -m campus_explorer start
    python -m campus_explorer replay --csv Path.csv
    python -m campus_explorer status
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from campus_explorer.config import ExplorerConfig
from campus_explorer.csv_io import iter_coordinates, load_track_points
from campus_explorer.errors import InvalidInputError
from campus_explorer.models import DEFAULT_TZ, Coordinate, POICategory
from campus_explorer.progression import ProgressUpdate
from campus_explorer.session import ExplorerSession
from campus_explorer.stats import format_distance, format_percent, summarize
from campus_explorer.store import JsonStateStore
from campus_explorer.timeutils import parse_dt

DEFAULT_STATE = "explorer_state.json"
NOTIFICATION_FLAGS = ("enabled", "achievements", "challenges", "reminders", "friends")


def _open_session(args: argparse.Namespace) -> ExplorerSession:
    config = ExplorerConfig().with_overrides(tz_name=args.tz, campus_area_m2=args.campus_area_m2)
    return ExplorerSession(JsonStateStore(args.state), config=config)


def _print_update(update: ProgressUpdate) -> None:
    for a in update.unlocked:
        print(f"🏆 解锁成就：{a.title}（{a.description}）")
    for c in update.completed:
        print(f"⚡ 完成挑战：{c.title}（+{c.reward_points} 分）")
    for m in update.milestones:
        print(f"🎯 达成目标：{m}")


def _cmd_start(args: argparse.Namespace) -> int:
    session = _open_session(args)
    update = session.start()
    streak = session.progression.streak
    print(f"连续打卡：{streak.current} 天（最长 {streak.longest} 天）")
    print("### 进行中的挑战")
    for c in session.progression.active_challenges():
        print(f"- [{c.kind.value}] {c.title}: {c.progress}/{c.requirement}，截止 {c.expires_at.isoformat(sep=' ')}")
    _print_update(update)
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    session = _open_session(args)
    stats = summarize(session)
    if args.json:
        print(json.dumps(asdict(stats), ensure_ascii=False, indent=2))
        return 0

    print("### 运动")
    print(f"steps={stats.steps}（来源 {stats.steps_source}），distance={format_distance(stats.distance_m)}")
    print(f"calories≈{stats.calories}，active_minutes≈{stats.active_minutes}")
    print(
        f"今日目标：步数 {format_percent(stats.daily_steps_progress)}，"
        f"距离 {format_percent(stats.daily_distance_progress)}"
    )
    print()
    print("### 探索")
    print(
        f"coverage={stats.exploration_percent:.2f}%，regions={stats.explored_regions}，"
        f"heat_cells={stats.heat_cells}，path_points={stats.path_points}"
    )
    print(f"已到访地点：{stats.visited_pois}/{stats.total_pois}")
    print()
    print("### 奖励")
    print(
        f"points={stats.total_points}，成就 {stats.unlocked_achievements}/{stats.total_achievements}，"
        f"已完成挑战 {stats.completed_challenges}，进行中 {stats.active_challenges}"
    )
    print(f"连续打卡 {stats.current_streak} 天（最长 {stats.longest_streak} 天），好友 {stats.friends}")
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    points, summary = load_track_points(args.csv)
    if args.range_start is not None:
        start_ms = int(parse_dt(args.range_start, args.tz).timestamp() * 1000)
        points = [p for p in points if p.geo_time_ms >= start_ms]
    if args.range_end is not None:
        end_ms = int(parse_dt(args.range_end, args.tz).timestamp() * 1000)
        points = [p for p in points if p.geo_time_ms <= end_ms]

    session = _open_session(args)
    result = session.replay(iter_coordinates(points, max_accuracy_m=args.max_accuracy_m))
    print(
        f"读取 {summary.rows_parsed}/{summary.rows_total} 行，回放 {result.fixes} 个定位点，"
        f"路径接受 {result.accepted} 个，地点到访 {result.poi_visits} 次"
    )
    print(
        f"distance={format_distance(session.path.total_distance_m)}，"
        f"coverage={session.exploration.exploration_percentage:.2f}%"
    )
    _print_update(result.update)
    return 0


def _cmd_steps(args: argparse.Namespace) -> int:
    session = _open_session(args)
    update = session.record_steps(args.count, args.source)
    print(f"步数已更新：{session.steps.count}（来源 {session.steps.source}）")
    _print_update(update)
    return 0


def _cmd_poi_list(args: argparse.Namespace) -> int:
    session = _open_session(args)
    for poi in session.exploration.points_of_interest:
        mark = "✔" if poi.is_visited else " "
        last = poi.last_visited.isoformat(sep=" ") if poi.last_visited else "-"
        print(
            f"[{mark}] {poi.id}  {poi.name}（{poi.category.label}） "
            f"{poi.coordinate.latitude:.6f},{poi.coordinate.longitude:.6f} visits={poi.visit_count} last={last}"
        )
    return 0


def _cmd_poi_add(args: argparse.Namespace) -> int:
    session = _open_session(args)
    poi = session.add_custom_poi(
        args.name,
        Coordinate(args.lat, args.lon),
        category=POICategory(args.category),
        notes=args.notes,
    )
    print(f"已添加地点：{poi.name}（id={poi.id}）")
    return 0


def _cmd_poi_remove(args: argparse.Namespace) -> int:
    session = _open_session(args)
    poi = session.remove_poi(args.id)
    print(f"已删除地点：{poi.name}")
    return 0


def _cmd_friend_code(args: argparse.Namespace) -> int:
    session = _open_session(args)
    print(f"我的好友码：{session.friends.user_code}（{session.friends.profile.username}）")
    ids = session.friends.friend_ids
    print(f"好友（{len(ids)}）：{', '.join(ids) if ids else '暂无'}")
    return 0


def _cmd_friend_add(args: argparse.Namespace) -> int:
    session = _open_session(args)
    update = session.connect_friend(args.code)
    print(f"已添加好友：{args.code.strip()}")
    _print_update(update)
    return 0


def _cmd_friend_remove(args: argparse.Namespace) -> int:
    session = _open_session(args)
    if session.remove_friend(args.code):
        print(f"已删除好友：{args.code}")
    else:
        print(f"不是好友：{args.code}")
    return 0


def _cmd_goals(args: argparse.Namespace) -> int:
    session = _open_session(args)
    goals = session.progression.goals
    changed = any(v is not None for v in (args.daily_steps, args.daily_distance_m, args.weekly_steps, args.weekly_distance_m))
    if changed:
        goals = session.update_goals(
            daily_steps=args.daily_steps,
            daily_distance_m=args.daily_distance_m,
            weekly_steps=args.weekly_steps,
            weekly_distance_m=args.weekly_distance_m,
        )
    print(
        f"每日：{goals.daily_steps} 步 / {format_distance(goals.daily_distance_m)}；"
        f"每周：{goals.weekly_steps} 步 / {format_distance(goals.weekly_distance_m)}"
    )
    if changed:
        # A lowered goal may already be reached today.
        _print_update(session.refresh_progress())
    return 0


def _cmd_notifications(args: argparse.Namespace) -> int:
    session = _open_session(args)
    flags = {name: getattr(args, name) for name in NOTIFICATION_FLAGS}
    settings = session.notifier.settings
    if any(v is not None for v in flags.values()):
        settings = session.update_notification_settings(
            **{k: (v == "on") if v is not None else None for k, v in flags.items()}
        )
    print("，".join(f"{k}={'on' if v else 'off'}" for k, v in settings.to_dict().items()))
    return 0


def _cmd_achievements(args: argparse.Namespace) -> int:
    session = _open_session(args)
    for a in session.progression.achievements:
        if args.unlocked and not a.is_unlocked:
            continue
        mark = "🏆" if a.is_unlocked else "  "
        print(f"{mark} {a.title}: {a.progress}/{a.requirement}（{a.category.value}）")
    return 0


def _cmd_feed(args: argparse.Namespace) -> int:
    session = _open_session(args)
    feed = session.progression.activity_feed[: max(0, args.limit)]
    if not feed:
        print("暂无动态")
    for item in feed:
        print(f"{item.timestamp.isoformat(sep=' ', timespec='seconds')} [{item.type.value}] {item.title} {item.description}")
    return 0


def _cmd_reset_path(args: argparse.Namespace) -> int:
    session = _open_session(args)
    session.reset_path()
    print("已清空路径、距离与步数")
    return 0


def _cmd_reset_exploration(args: argparse.Namespace) -> int:
    session = _open_session(args)
    session.reset_exploration()
    print("已清空探索数据（热力图、迷雾、地点到访记录）")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--state", type=str, default=DEFAULT_STATE, help="状态文件路径（JSON）")
    common.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 Asia/Kolkata")
    common.add_argument("--campus-area-m2", type=float, default=None, help="校园面积（平方米），用于计算探索百分比")
    common.add_argument("-v", "--verbose", action="store_true", help="输出INFO级别日志")

    p = argparse.ArgumentParser(prog="campus_explorer")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_start = sub.add_parser("start", parents=[common], help="开始会话：检查连续打卡并刷新每日/每周挑战")
    p_start.set_defaults(func=_cmd_start)

    p_st = sub.add_parser("status", parents=[common], help="查看运动、探索与奖励汇总")
    p_st.add_argument("--json", action="store_true", help="输出JSON（便于后处理）")
    p_st.set_defaults(func=_cmd_status)

    p_rp = sub.add_parser("replay", parents=[common], help="回放 Path.csv 轨迹，更新探索与成就")
    p_rp.add_argument("--csv", type=str, default="Path.csv", help="输入CSV路径")
    p_rp.add_argument(
        "--max-accuracy-m",
        type=float,
        default=None,
        help="丢弃水平精度差于该值（米）的定位点；未知精度（-1）的点保留",
    )
    p_rp.add_argument("--range-start", type=str, default=None, help="仅回放该时间之后的数据（例如 2025-12-01 00:00:00）")
    p_rp.add_argument("--range-end", type=str, default=None, help="仅回放该时间之前的数据（例如 2025-12-31 23:59:59）")
    p_rp.set_defaults(func=_cmd_replay)

    p_steps = sub.add_parser("steps", parents=[common], help="更新累计步数")
    p_steps.add_argument("--count", type=int, required=True, help="累计步数")
    p_steps.add_argument("--source", type=str, default="Device", help="步数来源，例如 Device / HealthKit")
    p_steps.set_defaults(func=_cmd_steps)

    p_pl = sub.add_parser("poi-list", parents=[common], help="列出所有地点及到访情况")
    p_pl.set_defaults(func=_cmd_poi_list)

    p_pa = sub.add_parser("poi-add", parents=[common], help="添加自定义地点")
    p_pa.add_argument("--name", type=str, required=True, help="地点名称")
    p_pa.add_argument("--lat", type=float, required=True, help="纬度")
    p_pa.add_argument("--lon", type=float, required=True, help="经度")
    p_pa.add_argument(
        "--category",
        type=str,
        default=POICategory.CUSTOM.value,
        choices=[c.value for c in POICategory],
        help="地点类别（只有 custom 类别可以删除）",
    )
    p_pa.add_argument("--notes", type=str, default="", help="备注")
    p_pa.set_defaults(func=_cmd_poi_add)

    p_pr = sub.add_parser("poi-remove", parents=[common], help="删除自定义地点")
    p_pr.add_argument("--id", type=str, required=True, help="地点 id（见 poi-list）")
    p_pr.set_defaults(func=_cmd_poi_remove)

    p_fc = sub.add_parser("friend-code", parents=[common], help="查看我的好友码与好友列表")
    p_fc.set_defaults(func=_cmd_friend_code)

    p_fa = sub.add_parser("friend-add", parents=[common], help="通过6位好友码添加好友")
    p_fa.add_argument("code", type=str, help="好友码")
    p_fa.set_defaults(func=_cmd_friend_add)

    p_fr = sub.add_parser("friend-remove", parents=[common], help="删除好友")
    p_fr.add_argument("code", type=str, help="好友码")
    p_fr.set_defaults(func=_cmd_friend_remove)

    p_g = sub.add_parser("goals", parents=[common], help="查看或修改每日/每周目标")
    p_g.add_argument("--daily-steps", type=int, default=None, help="每日步数目标")
    p_g.add_argument("--daily-distance-m", type=float, default=None, help="每日距离目标（米）")
    p_g.add_argument("--weekly-steps", type=int, default=None, help="每周步数目标")
    p_g.add_argument("--weekly-distance-m", type=float, default=None, help="每周距离目标（米）")
    p_g.set_defaults(func=_cmd_goals)

    p_n = sub.add_parser("notifications", parents=[common], help="查看或修改通知开关")
    for name in NOTIFICATION_FLAGS:
        p_n.add_argument(f"--{name}", choices=["on", "off"], default=None, help=f"{name} 通知开关")
    p_n.set_defaults(func=_cmd_notifications)

    p_a = sub.add_parser("achievements", parents=[common], help="列出成就进度")
    p_a.add_argument("--unlocked", action="store_true", help="只显示已解锁成就")
    p_a.set_defaults(func=_cmd_achievements)

    p_f = sub.add_parser("feed", parents=[common], help="查看动态（最新在前）")
    p_f.add_argument("--limit", type=int, default=20, help="最多显示条数")
    p_f.set_defaults(func=_cmd_feed)

    p_rst = sub.add_parser("reset-path", parents=[common], help="清空路径、距离与步数")
    p_rst.set_defaults(func=_cmd_reset_path)

    p_rse = sub.add_parser("reset-exploration", parents=[common], help="清空探索数据并重置地点到访")
    p_rse.set_defaults(func=_cmd_reset_exploration)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except InvalidInputError as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
