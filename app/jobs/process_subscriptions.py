"""到期订阅本地执行脚本"""

import argparse
import json
import logging
from datetime import datetime

from app.core.clock import to_naive_utc
from app.db.session import SessionLocal
from app.services.audit_service import AuditSink
from app.services.subscription_processor import SubscriptionProcessor
from app.core.redis import redis_client

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def run_processing(now: datetime = None, dry_run: bool = False):
    """执行到期订阅处理

    Args:
        now: 处理基准时间，默认当前 UTC 时间
        dry_run: 是否为试运行模式（只统计到期数量）
    """
    db = SessionLocal()
    try:
        processor = SubscriptionProcessor(db, AuditSink(redis_client))
        if dry_run:
            due_count = processor.count_due(now)
            logger.info(f"试运行模式：发现 {due_count} 个到期订阅")
            return due_count

        summary = processor.process_due(now)
        logger.info(f"处理完成：{summary.as_dict()['summary']}")
        return summary

    except Exception as e:
        logger.error(f"订阅处理失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

def main():
    """主函数"""
    parser = argparse.ArgumentParser(description='到期订阅处理工具')
    parser.add_argument(
        '--now',
        type=datetime.fromisoformat,
        default=None,
        help='处理基准时间（ISO 8601，默认当前 UTC 时间）'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='试运行模式，只统计不处理'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )
    
    args = parser.parse_args()
    
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    
    now = to_naive_utc(args.now) if args.now else None
    try:
        result = run_processing(now, args.dry_run)
        if args.dry_run:
            print(f"📊 试运行结果：发现 {result} 个到期订阅")
        else:
            print(f"✅ 处理完成：")
            print(json.dumps(result.as_dict(), ensure_ascii=False, indent=2, default=str))
    except Exception as e:
        print(f"❌ 执行失败: {str(e)}")
        return 1
    
    return 0

if __name__ == "__main__":
    exit(main())
