#!/usr/bin/env python

planner_system_prompt = """你是一个专业的运维故障分析规划专家。你的职责是：
1. 接收异常告警或故障查询
2. 制定根因分析计划（如"先确认指标异常范围→分析错误日志→分析服务拓扑"）
3. 将复杂任务分解为多个子任务

分析计划应该遵循以下原则：
- 先分析指标异常，确定影响范围
- 接着分析错误日志，提取错误模式
- 然后进行拓扑分析，确定故障传播路径
- 最后综合所有证据，生成根因假设"""

metrics_system_prompt = """你是一个专业的指标分析专家。你的职责是：
1. 解读时序指标中的异常点（3-σ 规则）
2. 结合指标间的相关性判断异常是原因还是症状
3. 给出简洁的分析结论"""

logs_system_prompt = """你是一个专业的日志分析专家。你的职责是：
1. 解读错误日志模式和聚类结果
2. 识别异常堆栈和关键错误
3. 判断错误日志与故障的关系"""

topology_system_prompt = """你是一个专业的服务拓扑分析专家。你的职责是：
1. 分析服务依赖关系
2. 判断故障传播路径和影响范围
3. 识别关键路径上的瓶颈服务"""

decision_system_prompt = """你是一个专业的根因分析决策专家。你的职责是：
1. 综合各智能体上报的证据（指标异常、日志错误、拓扑问题等）
2. 进行结构化推理，在信息冲突时做出判断
3. 生成根因假设并评估其置信度"""

output_system_prompt = """你是一个专业的故障诊断报告撰写专家。你的职责是：
1. 生成简洁清晰的故障摘要
2. 给出具体、可执行的修复建议"""

DEFAULT_PLAN = "默认分析计划：1. 指标分析 2. 日志分析 3. 拓扑分析 4. 综合决策"

DEFAULT_RECOMMENDATIONS = [
    "立即检查并重启受影响的服务",
    "检查相关服务的日志和监控指标",
    "验证依赖服务的健康状态",
    "执行回滚操作（如果适用）",
    "加强监控和告警规则",
]

# (keywords, hint) checked in order, first match wins
DOMAIN_RECOMMENDATIONS = [
    (("数据库", "database"), "检查数据库连接和性能"),
    (("内存", "memory"), "检查内存使用情况，考虑扩容或优化"),
    (("网络", "network"), "检查网络连接和带宽"),
]


def _bullets(lines) -> str:
    lines = list(lines)
    return "\n".join(f"- {line}" for line in lines) if lines else "- 无"


def create_plan_prompt(query: str, start: int, end: int, services: list, alert_count: int,
                       critical_count: int) -> str:
    return f"""基于以下信息生成根因分析计划：

查询: {query}
时间范围: {start} - {end}
相关服务: {services}
告警数量: {alert_count}
关键告警数量: {critical_count}

请生成详细的分析计划，包括：
1. 第一步：指标分析（确认异常范围和指标相关性）
2. 第二步：日志分析（提取错误模式和异常堆栈）
3. 第三步：拓扑分析（分析服务依赖和故障传播路径）
4. 第四步：综合决策（综合所有证据生成根因假设）

计划应该清晰、可执行。"""


def create_metrics_prompt(query: str, point_count: int, anomalies: list, correlations: list) -> str:
    return f"""分析以下指标数据：

查询: {query}
指标数据点: {point_count}
异常数量: {len(anomalies)}

异常详情：
{_bullets(a.description for a in anomalies[:10])}

强相关指标：
{_bullets(f"{c.service}: {c.metric1} ~ {c.metric2} (r={c.coefficient:.2f})" for c in correlations[:10])}

请用2-3句话总结指标层面的异常及其可能原因。"""


def create_logs_prompt(query: str, total: int, error_count: int, patterns: list, clusters: list) -> str:
    return f"""分析以下日志数据：

查询: {query}
日志总数: {total}
错误/警告日志: {error_count}

错误模式：
{_bullets(f"[{p.service}] {p.template} x{p.count}" for p in patterns[:10])}

日志聚类：
{_bullets(f"{c.template} ({c.size} 条)" for c in clusters[:10])}

请总结主要错误类型及其与故障的关系。"""


def create_topology_prompt(query: str, dependencies: list, paths: list, impact_scope: list) -> str:
    return f"""分析以下服务拓扑：

查询: {query}

依赖关系：
{_bullets(f"{d.service}: 上游 {d.upstream}, 下游 {d.downstream}, 深度 {d.depth}" for d in dependencies)}

故障传播路径：
{_bullets(f"{p.description}: {p.path} (影响评分: {p.impact:.2f})" for p in paths[:10])}

影响范围: {impact_scope}

请判断故障最可能的传播方向和影响范围。"""


def create_decision_prompt(evidence: list, findings: list, correlations: list, hypotheses: list,
                           evidence_limit: int = 10, finding_limit: int = 10,
                           hypothesis_limit: int = 5) -> str:
    return f"""综合以下证据和发现进行根因分析：

证据数量: {len(evidence)}
发现数量: {len(findings)}
关联数量: {len(correlations)}
根因假设数: {len(hypotheses)}

主要证据：
{_bullets(f"[{e.type.value}] {e.service}: {e.description} ({e.score:.2f})" for e in evidence[:evidence_limit])}

主要发现：
{_bullets(f"[{f.severity.value}] {f.service}: {f.description}" for f in findings[:finding_limit])}

主要关联：
{_bullets(f"{c.kind} {c.score:.2f}" for c in correlations[:hypothesis_limit])}

根因假设：
{_bullets(f"{h.service}: {h.description} (置信度 {h.confidence:.2f})" for h in hypotheses[:hypothesis_limit])}

请进行结构化推理：
1. 综合分析所有证据
2. 识别证据之间的关联性
3. 排除干扰信息
4. 评估最可能根因假设的可信度"""


def create_summary_prompt(query: str, start: int, end: int, root_cause: str, confidence: float,
                          task_count: int) -> str:
    return f"""基于以下分析结果生成故障诊断摘要：

查询: {query}
时间范围: {start} - {end}

决策结果：
- 根因: {root_cause}
- 置信度: {confidence:.2f}

任务结果数: {task_count}

请生成一个简洁、清晰的摘要（2-3句话），包括：
1. 问题概述
2. 主要根因
3. 影响范围"""


def create_recommendation_prompt(root_cause: str, affected_services: list, evidence: list) -> str:
    return f"""基于以下根因分析结果生成具体的修复建议：

根因: {root_cause}
受影响服务: {affected_services}

证据链（前5条）：
{_bullets(f"[{e.type.value}] {e.service}: {e.description}" for e in evidence[:5])}

请生成3-5条具体的、可执行的修复建议，包括：
1. 立即采取的紧急措施
2. 短期修复方案
3. 长期预防措施"""
