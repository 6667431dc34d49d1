"""
Generated artefacts: contract and receipt PDFs, CSV/XLSX exports and
member access QR codes.
"""
