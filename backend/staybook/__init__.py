"""
StayBook - 酒店客房预订系统后端
"""
