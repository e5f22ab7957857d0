#!/usr/bin/env python
"""
AIOps RCA运行脚本
读取场景目录中的指标/日志/拓扑数据，运行多智能体根因分析并输出报告
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime

from aiops_rca import CollaborationConfig, create_chat_model, create_collaborator, format_report
from aiops_rca.datasources import JsonLogsSource, JsonMetricsSource, JsonTopologySource, LocalDataLoader
from aiops_rca.exceptions import AIOpsRCAError

project_root = os.path.dirname(os.path.abspath(__file__))


# 配置日志 - 同时输出到控制台和文件
def setup_logging(verbose: bool = False):
    """设置日志配置，同时输出到控制台和文件"""

    log_dir = os.path.join(project_root, "logs")
    os.makedirs(log_dir, exist_ok=True)

    log_filename = f"aiops_rca_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    log_filepath = os.path.join(log_dir, log_filename)

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # 清除已有的处理器
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_filepath, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)  # 文件中保存更详细的日志
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.getLogger('opentelemetry.attributes').setLevel(logging.ERROR)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    print(f"📝 日志将同时输出到控制台和文件: {log_filepath}")
    return log_filepath


def load_config(args) -> CollaborationConfig:
    config = CollaborationConfig.from_yaml(args.config) if args.config else CollaborationConfig.from_env()
    return config.merged(deadline=args.deadline, llm_model=args.model, debug=args.verbose or None)


def save_results(report, output: str = None):
    """保存 Markdown 报告和 JSON 结果"""
    results_dir = os.path.join(project_root, "results")
    os.makedirs(results_dir, exist_ok=True)
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')

    json_path = os.path.join(results_dir, f"rca_result_{stamp}.json")
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2, default=str)
    print(f"💾 JSON结果已保存: {json_path}")

    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(format_report(report))
        print(f"💾 报告已保存: {output}")


def run_analysis(args):
    """运行单次根因分析"""
    config = load_config(args)
    loader = LocalDataLoader(args.data_dir, debug=config.debug)
    alerts = loader.load_alerts()

    collaborator = create_collaborator(
        chat=create_chat_model(config),
        metrics_source=JsonMetricsSource(loader),
        logs_source=JsonLogsSource(loader),
        topology_source=JsonTopologySource(loader),
        config=config,
        tenant_id=args.tenant,
    )

    print(f"\n🎯 开始RCA分析")
    print(f"   📅 时间范围: {args.start} ~ {args.end}")
    print(f"   🔍 服务: {args.service or '(来自告警)'}")
    print(f"   🚨 告警: {len(alerts)}条")
    print(f"   💾 数据源: {args.data_dir}")
    print("-" * 50)

    start_time = datetime.now()
    report = collaborator.collaborate_sync(
        query=args.query,
        time_range=(args.start, args.end),
        services=args.service or [],
        alerts=alerts,
    )
    execution_time = (datetime.now() - start_time).total_seconds()

    print(f"\n✅ RCA分析完成 ({execution_time:.2f}秒)")
    print(format_report(report))
    save_results(report, args.output)
    return report


def main():
    parser = argparse.ArgumentParser(description='AIOps 多智能体根因分析')
    parser.add_argument('--data-dir', required=True, help='场景数据目录 (metrics.json, logs.json, topology.json, alerts.json)')
    parser.add_argument('--query', default='系统出现异常，请分析根因', help='故障描述')
    parser.add_argument('--start', type=int, required=True, help='开始时间 (unix 秒)')
    parser.add_argument('--end', type=int, required=True, help='结束时间 (unix 秒)')
    parser.add_argument('--service', action='append', help='可疑服务，可重复指定')
    parser.add_argument('--config', help='YAML 配置文件')
    parser.add_argument('--deadline', type=float, help='整体超时（秒）')
    parser.add_argument('--model', help='LLM 模型名')
    parser.add_argument('--tenant', default='default', help='租户 ID')
    parser.add_argument('--output', help='Markdown 报告输出路径')
    parser.add_argument('--verbose', action='store_true', help='输出调试日志')
    args = parser.parse_args()

    if args.end < args.start:
        parser.error("--end must not be earlier than --start")

    setup_logging(args.verbose)

    try:
        run_analysis(args)
    except AIOpsRCAError as e:
        print(f"❌ 分析失败: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
