import json
import os
from dataclasses import asdict, fields
from typing import Any, Dict

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.setting.setting_models import AppConfig


class SettingService:
    """
    用途：配置服务类，负责 setting.json 的加载、保存与运行时更新。
    """

    # JSON 键名 (大写) -> AppConfig 属性名 (小写)
    _SECTION_MAPPING: Dict[str, str] = {
        "SITE": "site",
        "CONTENT_SCAN": "content_scan",
        "EXCLUDE": "exclude",
        "SCAN": "scan",
        "BATCH_PROCESSING": "batch_processing",
        "STORAGE": "storage",
        "LOG": "log",
        "SYSTEM": "system"
    }

    CONFIG_FILE_NAME: str = 'setting.json'

    def __init__(self) -> None:
        """
        用途：初始化配置服务，先构造默认配置再尝试从运行目录加载。
        """
        self._config: AppConfig = AppConfig()
        self.config_path: str = os.path.join(Utils.get_runtime_path(), self.CONFIG_FILE_NAME)
        self._load_config()

    def get_config(self) -> AppConfig:
        """
        用途：获取当前配置对象。
        返回值：AppConfig 实例（各服务每次使用时读取，保证配置修改即时生效）。
        """
        return self._config

    def reset(self) -> None:
        """用途：恢复为默认配置（不落盘）。"""
        self._config = AppConfig()

    def _load_config(self) -> None:
        """
        用途：从本地 JSON 文件加载配置；文件不存在时写出默认配置并继续运行。
        """
        if not os.path.exists(self.config_path):
            self.save_config()
            LogUtils.info(f"未检测到配置文件，已生成默认配置：{self.config_path}")
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded_json = json.load(f)
        except (OSError, ValueError) as e:
            LogUtils.error(f"加载配置文件失败，将使用默认配置: {e}")
            return

        if not isinstance(loaded_json, dict):
            return
        for json_key, attr_name in self._SECTION_MAPPING.items():
            self._merge_section(attr_name, loaded_json.get(json_key))

    def _merge_section(self, attr_name: str, section_data: Any) -> None:
        """
        用途：将字典数据合并进对应的配置段，未知字段忽略。
        入参：
            attr_name: AppConfig 属性名
            section_data: 待合并的数据，非字典时直接忽略
        """
        if not isinstance(section_data, dict):
            return
        target_obj = getattr(self._config, attr_name)
        for key, value in section_data.items():
            if hasattr(target_obj, key):
                setattr(target_obj, key, value)

    def save_config(self) -> None:
        """
        用途：将当前配置持久化到磁盘，保持大写键名结构。
        """
        config_to_save: Dict[str, Any] = {
            json_key: asdict(getattr(self._config, attr_name))
            for json_key, attr_name in self._SECTION_MAPPING.items()
        }
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(config_to_save, f, indent=4, ensure_ascii=False)
        except OSError as e:
            LogUtils.error(f"保存配置文件时发生错误: {e}")

    def update_settings(self, data: Dict[str, Any], operator_name: str) -> bool:
        """
        用途：批量更新配置项并持久化。
        入参：
            data: 一级键名与 AppConfig 字段名一致（如 'scan'、'exclude'）
            operator_name: 操作人
        返回值：是否有配置段被更新
        """
        updated: bool = False
        for field_info in fields(AppConfig):
            section_data = data.get(field_info.name)
            if isinstance(section_data, dict):
                self._merge_section(field_info.name, section_data)
                updated = True

        if updated:
            self.save_config()
            LogUtils.set_level(self._config.system.debug_api_enabled)
            LogUtils.info(f"{operator_name} 更新了系统配置")
        return updated


# 实例化单例
settingService = SettingService()
