import sys

from storage_hygiene.main import start_server

if __name__ == "__main__":
    """
    用途说明：项目统一启动入口。
    入参说明：无
    返回值说明：无
    """
    try:
        start_server()
    except KeyboardInterrupt:
        print("\n[系统] 正在退出...")
        sys.exit(0)
