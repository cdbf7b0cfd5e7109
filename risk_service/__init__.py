"""
加密资产风险分析服务
独立的风险评分微服务，提供 HTTP 接口

架构分层：
  数据获取层 (Acquisition)  → 主数据源（Binance）/ 备用数据源（CoinGecko）+ 自动降级
  缓存层     (Cache)        → 进程内 TTL 缓存（单飞去重） + 可选 Redis 共享缓存
  处理层     (Processing)   → 上游响应解析、数值规范化、成交量统计
  分析层     (Analysis)     → 风险子评分、综合评分、高级风险指标
"""

__version__ = "1.0.0"
