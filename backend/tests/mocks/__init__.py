"""Test doubles for the generation boundary and the LLM client"""
