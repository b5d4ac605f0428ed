class GlobalConfig:
    """
    用途说明：系统全局静态配置类，统一管理服务端口与版本号。
    """
    # 服务运行端口
    SYSTEM_PORT: int = 5000

    # waitress 请求处理线程数
    SERVER_THREADS: int = 8

    APP_VERSION: str = "1.0.0"
