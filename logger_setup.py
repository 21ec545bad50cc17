# logger_setup.py
import logging
import os
import sys
from datetime import datetime

# 导入Config类仅用于类型注解
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from config_loader import Config

LOG_FORMAT = '%(asctime)s [%(levelname)-8s] %(message)s'
LOG_DATEFMT = '%H:%M:%S'


def setup_logging(config: 'Config', log_dir: str = "logs") -> str | None:
    """
    配置全局日志系统。

    这个函数会设置两种日志输出目标：
    1. 命令行 (stdout)
    2. 文件 (如果配置中启用)

    Args:
        config (Config): 全局配置对象。
        log_dir (str): 日志文件所在目录。

    Returns:
        str | None: 日志文件路径，未启用文件日志时返回None。
    """
    # 从配置中读取日志级别，并转换为logging模块对应的常量
    log_level_str = config.log_level.upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    # 定义全局统一的日志格式
    log_formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    # 获取根logger，配置它会影响到所有未单独配置的子logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 清除任何可能存在的旧处理器，以防重复加载
    root_logger.handlers.clear()

    # 1. 配置命令行输出 (StreamHandler)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(log_formatter)
    root_logger.addHandler(stream_handler)

    # 2. 配置可选的文件输出 (FileHandler)
    log_file = None
    if config.log_to_file:
        os.makedirs(log_dir, exist_ok=True)
        # 使用时间戳命名日志文件，避免覆盖
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = os.path.join(log_dir, f"{timestamp}.log")

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(log_formatter)
        root_logger.addHandler(file_handler)

        logging.info(f"日志将保存到: {log_file}")

    logging.info(f"日志系统初始化完成，级别: {log_level_str}")
    return log_file
