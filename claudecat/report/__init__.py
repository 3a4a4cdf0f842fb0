"""Filtering, grouping, sorting and rendering of usage analysis results."""