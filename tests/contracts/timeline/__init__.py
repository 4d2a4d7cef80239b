"""Timeline Service data contract"""
