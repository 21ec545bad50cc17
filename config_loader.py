# config_loader.py
import logging
import configparser

from config_policy import ConfigPolicy, EngineTimings, Viewport


class Config:
    """
    全局配置管理类。
    负责加载、保存和提供对 'config.ini' 文件的访问，
    并把其中的值转换成调度引擎使用的 ConfigPolicy / EngineTimings 快照。
    """

    def __init__(self, filepath='config.ini'):
        """
        初始化配置类。

        Args:
            filepath (str): 配置文件的路径。
        """
        self.filepath = filepath
        self.parser = configparser.ConfigParser()

        # 定义所有配置项的默认值，这使得程序在没有配置文件时也能正常运行
        self._defaults = {
            'Display': {
                'font_name': '微软雅黑', 'font_size': '16', 'stroke_width': '2',
                'max_lanes': '10', 'opacity': '0.8',
                'viewport_width': '0', 'viewport_height': '0',  # 0 表示使用主屏幕尺寸
            },
            'Danmaku': {
                'enabled': 'true', 'speed': '1.0', 'density': '0.8',
                'show_scroll': 'true', 'show_top': 'true', 'show_bottom': 'true',
                'max_danmaku_count': '250',
                'allow_overlap': 'false',  # 允许弹幕重叠
            },
            'Filter': {'level': '1'},
            'Engine': {
                'segment_window_s': '300', 'back_window_s': '0.5', 'forward_window_s': '0.5',
                'seek_threshold_s': '2.0', 'tick_interval_ms': '100', 'density_cap': '20',
                'base_speed_px_s': '100', 'min_scroll_duration_ms': '6000',
                'dwell_ms': '3000', 'fade_ms': '500', 'scroll_occupancy_ratio': '0.5',
                'lane_seed': '',  # 留空表示随机
            },
            'Sync': {'target_aumid': 'PotPlayer64'},
            'Cache': {'directory': 'cache', 'ttl_hours': '24'},
            'Debug': {'enabled': 'false', 'info_position': 'bottom_left'},
            'OnTopStrategy': {'method': '1'},
            'Logging': {'level': 'INFO', 'log_to_file': 'true'},
            'DEFAULT': {'LastDanmakuPath': ''}  # DEFAULT节用于存储全局默认值
        }
        self.load()

    def load(self):
        """
        从 .ini 文件加载配置。
        它首先加载内置的默认值，然后用文件中的值覆盖它们。
        """
        parser = configparser.ConfigParser()
        # 1. 读取内置的默认值
        parser.read_dict(self._defaults)
        # 2. 读取文件，文件中的值会覆盖默认值
        parser.read(self.filepath, encoding='utf-8')
        self.parser = parser
        # 3. 将解析的值加载为类的属性，方便直接访问
        self._load_values()

    def restore_defaults(self):
        """
        将所有设置恢复为内置的默认值，并立即保存到文件。
        """
        logging.info("正在恢复所有设置为默认值...")
        parser = configparser.ConfigParser()
        parser.read_dict(self._defaults)
        self.parser = parser
        self._load_values()
        self.save()

    def _load_values(self):
        """
        私有方法，将 parser 中的配置项读取为强类型的类属性。
        """
        p = self.parser
        # [Display]
        self.font_name = p.get('Display', 'font_name')
        self.font_size = p.getint('Display', 'font_size')
        self.stroke_width = p.getint('Display', 'stroke_width')
        self.max_lanes = p.getint('Display', 'max_lanes')
        self.opacity = p.getfloat('Display', 'opacity')
        self.viewport_width = p.getint('Display', 'viewport_width')
        self.viewport_height = p.getint('Display', 'viewport_height')
        # [Danmaku]
        self.enabled = p.getboolean('Danmaku', 'enabled')
        self.speed = p.getfloat('Danmaku', 'speed')
        self.density = p.getfloat('Danmaku', 'density')
        self.show_scroll = p.getboolean('Danmaku', 'show_scroll')
        self.show_top = p.getboolean('Danmaku', 'show_top')
        self.show_bottom = p.getboolean('Danmaku', 'show_bottom')
        self.max_danmaku_count = p.getint('Danmaku', 'max_danmaku_count')
        self.allow_overlap = p.getboolean('Danmaku', 'allow_overlap')
        # [Filter]
        self.filter_level = p.getint('Filter', 'level')
        # [Engine]
        self.segment_window_s = p.getfloat('Engine', 'segment_window_s')
        self.back_window_s = p.getfloat('Engine', 'back_window_s')
        self.forward_window_s = p.getfloat('Engine', 'forward_window_s')
        self.seek_threshold_s = p.getfloat('Engine', 'seek_threshold_s')
        self.tick_interval_ms = p.getint('Engine', 'tick_interval_ms')
        self.density_cap = p.getint('Engine', 'density_cap')
        self.base_speed_px_s = p.getfloat('Engine', 'base_speed_px_s')
        self.min_scroll_duration_ms = p.getfloat('Engine', 'min_scroll_duration_ms')
        self.dwell_ms = p.getfloat('Engine', 'dwell_ms')
        self.fade_ms = p.getfloat('Engine', 'fade_ms')
        self.scroll_occupancy_ratio = p.getfloat('Engine', 'scroll_occupancy_ratio')
        seed = p.get('Engine', 'lane_seed').strip()
        self.lane_seed = int(seed) if seed else None
        # [Sync] & [DEFAULT]
        self.target_aumid = p.get('Sync', 'target_aumid')
        self.last_danmaku_path = p.get('DEFAULT', 'LastDanmakuPath')
        # [Cache]
        self.cache_directory = p.get('Cache', 'directory')
        self.cache_ttl_hours = p.getfloat('Cache', 'ttl_hours')
        # [Debug]
        self.debug = p.getboolean('Debug', 'enabled')
        self.debug_info_position = p.get('Debug', 'info_position')
        # [OnTopStrategy]
        self.ontop_strategy = p.get('OnTopStrategy', 'method')
        # [Logging]
        self.log_level = p.get('Logging', 'level')
        self.log_to_file = p.getboolean('Logging', 'log_to_file')

    def to_policy(self) -> ConfigPolicy:
        """把用户可调的配置项转换成 ConfigPolicy 快照。"""
        return ConfigPolicy(
            enabled=self.enabled,
            opacity=self.opacity,
            font_size=self.font_size,
            speed=self.speed,
            density=self.density,
            show_scroll=self.show_scroll,
            show_top=self.show_top,
            show_bottom=self.show_bottom,
            filter_level=self.filter_level,
            max_lanes_configured=self.max_lanes,
            allow_overlap=self.allow_overlap,
            max_active_items=self.max_danmaku_count,
        ).clamped()

    def to_timings(self) -> EngineTimings:
        """把 [Engine] 节转换成 EngineTimings，结构不合法时抛出 DanmakuConfigError。"""
        return EngineTimings(
            segment_window_s=self.segment_window_s,
            back_window_s=self.back_window_s,
            forward_window_s=self.forward_window_s,
            seek_threshold_s=self.seek_threshold_s,
            tick_interval_ms=self.tick_interval_ms,
            density_cap=self.density_cap,
            base_speed_px_s=self.base_speed_px_s,
            min_scroll_duration_ms=self.min_scroll_duration_ms,
            dwell_ms=self.dwell_ms,
            fade_ms=self.fade_ms,
            scroll_occupancy_ratio=self.scroll_occupancy_ratio,
        ).validate()

    def to_viewport(self, fallback: Viewport | None = None) -> Viewport:
        """配置中指定了渲染区域尺寸时使用配置值，否则使用传入的屏幕尺寸。"""
        if self.viewport_width > 0 and self.viewport_height > 0:
            return Viewport(self.viewport_width, self.viewport_height)
        return fallback or Viewport()

    def update_from_policy(self, policy: ConfigPolicy):
        """把运行时修改过的策略写回配置属性（之后调用 save() 持久化）。"""
        self.enabled = policy.enabled
        self.opacity = policy.opacity
        self.font_size = int(policy.font_size)
        self.speed = policy.speed
        self.density = policy.density
        self.show_scroll = policy.show_scroll
        self.show_top = policy.show_top
        self.show_bottom = policy.show_bottom
        self.filter_level = policy.filter_level
        self.max_lanes = policy.max_lanes_configured
        self.allow_overlap = policy.allow_overlap
        self.max_danmaku_count = policy.max_active_items

    def save(self):
        """
        将当前内存中的配置值写回到 .ini 文件中。
        """
        p = self.parser
        # 更新 parser 对象中的值
        p.set('Display', 'font_name', self.font_name)
        p.set('Display', 'font_size', str(self.font_size))
        p.set('Display', 'stroke_width', str(self.stroke_width))
        p.set('Display', 'max_lanes', str(self.max_lanes))
        p.set('Display', 'opacity', str(self.opacity))
        p.set('Display', 'viewport_width', str(self.viewport_width))
        p.set('Display', 'viewport_height', str(self.viewport_height))

        p.set('Danmaku', 'enabled', str(self.enabled).lower())  # bool转小写字符串
        p.set('Danmaku', 'speed', str(self.speed))
        p.set('Danmaku', 'density', str(self.density))
        p.set('Danmaku', 'show_scroll', str(self.show_scroll).lower())
        p.set('Danmaku', 'show_top', str(self.show_top).lower())
        p.set('Danmaku', 'show_bottom', str(self.show_bottom).lower())
        p.set('Danmaku', 'max_danmaku_count', str(self.max_danmaku_count))
        p.set('Danmaku', 'allow_overlap', str(self.allow_overlap).lower())

        p.set('Filter', 'level', str(self.filter_level))

        p.set('Sync', 'target_aumid', self.target_aumid)
        p.set('Cache', 'directory', self.cache_directory)
        p.set('Cache', 'ttl_hours', str(self.cache_ttl_hours))

        p.set('Debug', 'enabled', str(self.debug).lower())
        p.set('Debug', 'info_position', self.debug_info_position)

        p.set('OnTopStrategy', 'method', self.ontop_strategy)

        p.set('Logging', 'level', self.log_level)
        p.set('Logging', 'log_to_file', str(self.log_to_file).lower())

        p.set('DEFAULT', 'LastDanmakuPath', self.last_danmaku_path)

        try:
            with open(self.filepath, 'w', encoding='utf-8') as configfile:
                p.write(configfile)
            logging.info(f"配置已成功保存到 {self.filepath}")
        except OSError as e:
            logging.error(f"保存配置失败: {e}")


_config: Config | None = None


def get_config(filepath: str | None = None) -> Config:
    """
    全局访问点，获取应用程序的 Config 实例。
    第一次调用时创建；传入 filepath 会重新从该文件加载。
    """
    global _config
    if _config is None or filepath is not None:
        _config = Config(filepath or 'config.ini')
    return _config
