"""Simulation of a small teaching Unix: on-disk layout, in-memory disk, buffer cache, log, file system, files and pipes, process table, console, keyboard and small tools."""

__version__ = "0.1.0"