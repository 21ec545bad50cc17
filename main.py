# main.py
import argparse
import asyncio
import logging
import os
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="本地播放器弹幕叠加层")
    parser.add_argument("danmaku_path", nargs="?", default=None,
                        help="弹幕文件路径 (XML 或 JSON)，默认使用上次打开的文件")
    parser.add_argument("--config", default="config.ini", help="配置文件路径 (默认: config.ini)")
    parser.add_argument("--title", default=None, help="视频标题，用于缓存键，默认取文件名")
    parser.add_argument("--episode", default=None, help="集数")
    parser.add_argument("--video-id", default=None, help="视频标识")
    parser.add_argument("--seed", type=int, default=None, help="轨道随机分配的种子")
    parser.add_argument("--list-sessions", action="store_true", help="列出当前的媒体会话后退出")
    return parser


def main(argv=None):
    """
    应用程序主入口函数。
    """
    args = build_parser().parse_args(argv)

    from config_loader import get_config
    from logger_setup import setup_logging

    # 获取全局配置对象并设置日志系统
    config = get_config(args.config)
    setup_logging(config)

    # Qt 相关模块在这里才导入，使得 --help 不依赖图形环境
    from PyQt6.QtWidgets import QApplication
    from comment_source import LocalFileProvider
    from danmaku_controller import DanmakuController

    app = QApplication(sys.argv)
    controller = DanmakuController(seed=args.seed)

    if args.list_sessions:
        sessions = asyncio.run(controller.monitor.list_sessions())
        if not sessions:
            print("未发现任何活动媒体会话。请打开一个播放器并播放媒体。")
        for sess in sessions:
            print(f"  - AUMID: {sess['aumid']:<50} | 标题: {sess['title']}")
        return 0

    danmaku_path = args.danmaku_path or config.last_danmaku_path
    if not danmaku_path:
        logging.error("没有指定弹幕文件。")
        return 2

    config.last_danmaku_path = danmaku_path
    config.save()

    title = args.title or os.path.splitext(os.path.basename(danmaku_path))[0]
    controller.start(LocalFileProvider(danmaku_path), title, args.episode, args.video_id)
    app.aboutToQuit.connect(controller.stop)

    logging.info("弹幕叠加层启动成功。")
    # 进入Qt应用程序的事件循环
    return app.exec()


if __name__ == '__main__':
    try:
        sys.exit(main())
    except Exception as e:
        # 捕获所有未被处理的顶层异常，记录后退出
        logging.critical("应用程序发生未捕获的严重错误: %s", e, exc_info=True)
        sys.exit(1)
