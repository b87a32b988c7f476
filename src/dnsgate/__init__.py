"""dnsgate package"""
