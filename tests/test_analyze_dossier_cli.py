"""
Command line interface tests
"""

import json

from analyze_dossier import main


def _write_payload(tmp_path):
    payload = {
        'operador': {'noColaborador': '10234', 'nombre': 'Ana'},
        'servicios': {'registros': [
            {'_id': 's1', 'fechaInput': '2025-02-01', 'noVuelo': 'AM100', 'statusServicio': 'CONCLUIDO'},
            {'_id': 's2', 'fechaInput': '2025-02-02', 'noVuelo': 'AM100', 'statusServicio': 'CONCLUIDO'},
        ]},
        'bitacora': {'registros': [
            {'_id': 'l1', 'entrada': '2025-02-01T08:00', 'salida': '2025-02-01T17:30', 'status': 'Cerrado'},
        ]},
    }
    path = tmp_path / '10234.json'
    path.write_text(json.dumps(payload), encoding='utf-8')
    return path


class TestCli:

    def test_analysis_and_artifacts(self, tmp_path, capsys):
        path = _write_payload(tmp_path)
        out = tmp_path / 'out'
        code = main([
            str(path), '--month', '2025-02', '--output-dir', str(out),
            '--export', 'services', '--format', 'commaSeparated',
            '--evidence', '2025-02-01', '--summary',
        ])
        assert code == 0
        assert (out / 'expediente-servicios-10234.csv').exists()
        assert (out / 'evidencia-10234.pdf').exists()
        assert (out / 'expediente-10234.pdf').exists()
        printed = capsys.readouterr().out
        assert 'DOSSIER 10234' in printed
        assert 'AM100: 2 days 2025-02-01 -> 2025-02-02' in printed

    def test_no_matching_evidence_is_not_an_error(self, tmp_path, capsys):
        path = _write_payload(tmp_path)
        code = main([str(path), '--output-dir', str(tmp_path), '--evidence', '2024-12-31'])
        assert code == 0
        assert 'No records on the selected dates.' in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / 'missing.json')]) == 1

    def test_invalid_month(self, tmp_path):
        assert main([str(_write_payload(tmp_path)), '--month', 'someday']) == 1
