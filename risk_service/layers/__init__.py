"""
数据流分层架构
  Layer 1 – Acquisition  : 数据获取（Binance / CoinGecko，重试 + 降级）
  Layer 2 – Cache        : 分数据源 TTL 缓存（进程内 → Redis）
  Layer 3 – Processing   : 响应解析与数值规范化
  Layer 4 – Analysis     : 风险评分与指标计算
"""
