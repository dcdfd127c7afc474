#!/usr/bin/env python
"""
启动 QuickStock Monitor API 服务器

使用方式:
    python scripts/run_server.py
    python scripts/run_server.py --host 0.0.0.0 --port 8000 --reload
    python scripts/run_server.py --no-monitoring

告警状态保存在进程内存中，因此固定为单进程运行。
"""
import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="启动 QuickStock Monitor API 服务器")
    parser.add_argument("--host", default=None, help="监听地址")
    parser.add_argument("--port", type=int, default=None, help="监听端口")
    parser.add_argument("--reload", action="store_true", help="开启热重载")
    parser.add_argument("--no-monitoring", action="store_true", help="不启动定时告警检查器")

    args = parser.parse_args()

    # 必须在读取配置之前设置
    if args.no_monitoring:
        os.environ["MONITORING_ENABLED"] = "false"

    from core.config import get_settings
    from logging_config import setup_logging

    settings = get_settings()

    # 配置日志
    setup_logging()

    # 运行服务器
    uvicorn.run(
        "api.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload or settings.debug,
        workers=1,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
