"""
Protocol implementations for cipengine: CIP and its EtherNet/IP encapsulation.
"""
