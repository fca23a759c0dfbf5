from __future__ import annotations

from pathlib import Path

import streamlit as st

from campus_explorer.config import ExplorerConfig
from campus_explorer.csv_io import iter_coordinates, load_track_points
from campus_explorer.errors import InvalidInputError
from campus_explorer.models import DEFAULT_TZ, Coordinate
from campus_explorer.session import ExplorerSession
from campus_explorer.stats import format_distance, format_percent, summarize
from campus_explorer.store import JsonStateStore


def _open_session(state_path: str, tz_name: str, campus_area_m2: float) -> ExplorerSession:
    config = ExplorerConfig(tz_name=tz_name, campus_area_m2=campus_area_m2)
    return ExplorerSession(JsonStateStore(state_path), config=config)


def main() -> None:
    st.set_page_config(page_title="校园探索：进度面板", layout="wide")
    st.title("校园探索：探索、成就与挑战")

    with st.sidebar:
        st.subheader("数据与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        state_path = st.text_input("状态文件路径", value="explorer_state.json")
        campus_area_m2 = st.number_input("校园面积（平方米）", value=1_000_000.0, step=50_000.0, min_value=1.0)

        try:
            session = _open_session(state_path, tz_name, float(campus_area_m2))
        except ValueError as exc:
            st.error(str(exc))
            return

        if st.button("开始会话（打卡 + 刷新挑战）", type="primary", use_container_width=True):
            update = session.start()
            st.success(f"连续打卡 {session.progression.streak.current} 天")
            for a in update.unlocked:
                st.toast(f"🏆 {a.title}")

        st.subheader("回放轨迹")
        path_csv = st.text_input("Path.csv 路径", value="Path.csv")
        if st.button("回放 Path.csv", use_container_width=True):
            if not Path(path_csv).exists():
                st.error(f"找不到文件：{path_csv!r}")
            else:
                with st.spinner("正在回放轨迹 ..."):
                    points, _ = load_track_points(path_csv)
                    result = session.replay(iter_coordinates(points))
                st.success(f"回放 {result.fixes} 个定位点，路径接受 {result.accepted} 个")

        with st.expander("添加自定义地点", expanded=False):
            name = st.text_input("名称")
            lat = st.number_input("纬度", value=16.4350, format="%.6f")
            lon = st.number_input("经度", value=80.5104, format="%.6f")
            if st.button("添加", use_container_width=True):
                try:
                    session.add_custom_poi(name, Coordinate(float(lat), float(lon)))
                    st.success(f"已添加：{name}")
                except InvalidInputError as exc:
                    st.error(str(exc))

        with st.expander("重置", expanded=False):
            if st.button("清空路径与步数", use_container_width=True):
                session.reset_path()
            if st.button("清空探索数据", use_container_width=True):
                session.reset_exploration()

    stats = summarize(session)

    st.subheader("汇总")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("步数", f"{stats.steps}", help=f"来源：{stats.steps_source}")
    c2.metric("距离", format_distance(stats.distance_m))
    c3.metric("探索度", f"{stats.exploration_percent:.1f}%")
    c4.metric("积分", str(stats.total_points))

    c5, c6, c7, c8 = st.columns(4)
    c5.metric("连续打卡", f"{stats.current_streak} 天", help=f"最长 {stats.longest_streak} 天")
    c6.metric("成就", f"{stats.unlocked_achievements}/{stats.total_achievements}")
    c7.metric("已到访地点", f"{stats.visited_pois}/{stats.total_pois}")
    c8.metric("今日步数目标", format_percent(stats.daily_steps_progress))

    st.subheader("进行中的挑战")
    challenge_rows = [
        {
            "title": c.title,
            "kind": c.kind.value,
            "progress": f"{c.progress}/{c.requirement}",
            "percent": format_percent(c.progress_ratio),
            "reward_points": c.reward_points,
            "expires_at": c.expires_at.isoformat(sep=" ", timespec="minutes"),
        }
        for c in session.progression.active_challenges()
    ]
    st.dataframe(challenge_rows, use_container_width=True)

    st.subheader("成就")
    achievement_rows = [
        {
            "title": a.title,
            "category": a.category.value,
            "progress": f"{a.progress}/{a.requirement}",
            "percent": format_percent(a.progress_ratio),
            "unlocked": a.is_unlocked,
            "unlocked_at": a.unlocked_at.isoformat(sep=" ", timespec="minutes") if a.unlocked_at else "",
        }
        for a in session.progression.achievements
    ]
    st.dataframe(achievement_rows, use_container_width=True, height=360)

    st.subheader("地点")
    poi_rows = [
        {
            "name": p.name,
            "category": p.category.label,
            "visited": p.is_visited,
            "visit_count": p.visit_count,
            "last_visited": p.last_visited.isoformat(sep=" ", timespec="minutes") if p.last_visited else "",
            "id": p.id,
        }
        for p in session.exploration.points_of_interest
    ]
    st.dataframe(poi_rows, use_container_width=True)

    st.subheader("动态")
    feed_rows = [
        {
            "time": f.timestamp.isoformat(sep=" ", timespec="minutes"),
            "type": f.type.value,
            "title": f.title,
            "description": f.description,
        }
        for f in session.progression.activity_feed
    ]
    st.dataframe(feed_rows, use_container_width=True, height=360)

    st.caption("说明：探索度按每个新网格累加 π·r² 估算（重叠区域会重复计算），仅作参考上限。")


if __name__ == "__main__":
    main()
