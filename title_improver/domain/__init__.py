"""Stages and pipeline wiring"""
