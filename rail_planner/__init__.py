"""
Rail Planner
Учет шин на складе, планирование материалов и наряды на распил
"""

__version__ = "1.0.0"
