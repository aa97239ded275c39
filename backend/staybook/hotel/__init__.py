"""
酒店领域层 - 预订生命周期、可用性与定价规则
"""
