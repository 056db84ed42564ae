"""Events and exceptions shared by every layer"""
