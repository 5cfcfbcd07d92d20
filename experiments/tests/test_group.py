import os

import pytest

from experiments.errors import ExperimentFormatError
from experiments.group import ExperimentGroup
from experiments.layouts import MultiLayout, SetLayout, SingleLayout


def _result(group, plate, well, time_point=24.0):
    result = group.get_result(plate, well, time_point)
    assert result is not None
    return result


def test_classify_files(s4_dir):
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    assert [os.path.basename(f) for f in group.layout_files] == ['layout S4.docx']
    assert [os.path.basename(f) for f in group.growth_files] == ['growth D1.csv']
    assert [os.path.basename(f) for f in group.prod_files] == ['S4_24h_prod.xlsx']
    assert group.bad_wells == {'D1': {'F4'}}
    assert group.time_series == [24.0]


def test_multi_group(s4_dir):
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    group.process_files()
    assert [exp.id for exp in group] == ['S4D1', 'S4S4A0']
    assert len(group.get_experiment('S4A0')) == 96

    b4 = _result(group, 'D1', 'B4')
    assert b4.strain == '926DthrABCDasdDdapA pfb6.4.2'
    assert not b4.iptg
    assert b4.growth == pytest.approx(5.91)
    assert b4.production == pytest.approx(0.019)
    assert not b4.suspect

    f4 = _result(group, 'D1', 'F4')
    assert f4.strain == '926DthrABCDasdDdapA pfb6.4.2'
    assert f4.iptg
    assert f4.growth == pytest.approx(2.95)
    assert f4.production == pytest.approx(0.059)
    assert f4.suspect

    a1 = _result(group, 'D1', 'A1')
    assert a1.strain == '277 control'
    assert a1.is_complete
    assert _result(group, 'D1', 'E1').strain == '277 control'
    assert _result(group, 'D1', 'H12').strain == '926 col12 DrhtA'
    assert _result(group, 'S4A0', 'A1').growth is None
    assert _result(group, 'S4A0', 'A1').production == pytest.approx(0.007)


def test_lookup_forms_agree(s4_dir):
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    group.process_files()
    experiment = group.get_experiment('D1')
    for result in experiment:
        assert group.get_result('D1', result.well, result.time_point) is result
        assert experiment.get(result.key) is result
    assert group.get_result('D7', 'A1', 24.0) is None


def test_set_group(s2_dir):
    group = ExperimentGroup(s2_dir, 'S2', SetLayout())
    group.process_files()
    e2 = _result(group, 'P6', 'E2')
    assert e2.strain == '277 DrhtA ptac-thrABC rhtA'
    assert not e2.iptg
    assert e2.growth == pytest.approx(6.67)
    assert e2.production == pytest.approx(0.0)
    assert not e2.suspect

    a8 = _result(group, 'P6', 'A8')
    assert a8.iptg
    assert a8.strain == '277 base rhtA'
    assert a8.growth == pytest.approx(2.6)
    assert a8.production is None

    none_a1 = _result(group, 'NONE', 'A1')
    assert none_a1.strain == '277 base'
    assert none_a1.growth == pytest.approx(1.0)
    assert none_a1.production == pytest.approx(0.0125)


def test_single_group(single_dir):
    group = ExperimentGroup(single_dir, 'G1', SingleLayout())
    assert group.time_series == [4.5, 24.0]
    assert [os.path.basename(f) for f in group.growth_files] == ['96well P1 24.xlsx', '96well P1 4p5.xlsx']
    assert [os.path.basename(f) for f in group.prod_files] == ['P1 production.xlsx']
    group.process_files()

    early = _result(group, 'P1', 'A1', 4.5)
    assert early.strain == 'str 7_0_0_A_asdO'
    assert early.growth == pytest.approx(1.0)
    assert early.production == pytest.approx(0.03)
    late = _result(group, 'P1', 'A1', 24.0)
    assert late.growth == pytest.approx(3.0)
    assert late.production == pytest.approx(0.045)

    assert not _result(group, 'P1', 'E1', 4.5).iptg
    iptg = _result(group, 'P1', 'E1', 24.0)
    assert iptg.iptg
    assert iptg.growth == pytest.approx(4.0)
    assert iptg.production == pytest.approx(0.06)
    assert _result(group, 'P1', 'E1', 4.5).growth == pytest.approx(2.0)
    assert _result(group, 'P1', 'B2', 24.0).production is None


def test_group_settings(s2_dir):
    group = ExperimentGroup(s2_dir, 'S2', SetLayout(), start_col=1, time_point=9.0)
    assert group.start_col == 1
    assert group.time_series == [9.0]
    assert ExperimentGroup.start_col == 0
    assert ExperimentGroup.time_point == 24.0


def test_norm_factor_override(s2_dir):
    group = ExperimentGroup(s2_dir, 'S2', SetLayout())
    group.norm_factor = 0.0
    group.process_files()
    assert _result(group, 'P6', 'E2').growth == pytest.approx(7.07)


def test_create_experiment_idempotent(tmp_path):
    group = ExperimentGroup(tmp_path, 'X', MultiLayout())
    first = group.create_experiment('D1')
    group.store('D1', '926', 'A1', False)
    assert group.create_experiment('D1') is first
    assert len(first) == 1
    assert len(group) == 1


def test_group_remove_bad_wells(s4_dir):
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    group.process_files()
    _result(group, 'D1', 'B4').growth = 0.0
    _result(group, 'S4A0', 'C3').growth = 0.0005
    assert group.remove_bad_wells() == 2
    assert group.get_result('D1', 'B4', 24.0) is None
    assert group.get_result('S4A0', 'C3', 24.0) is None
    assert group.get_result('D1', 'F4', 24.0) is not None


def test_bad_growth_file_aborts(s4_dir):
    with open(os.path.join(s4_dir, 'growth X.csv'), 'w') as handle:
        handle.write('"Some other export"\n')
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    with pytest.raises(ExperimentFormatError):
        group.process_files()


def test_lock_files_ignored(s4_dir):
    with open(os.path.join(s4_dir, '~$S4_24h_prod.xlsx'), 'w') as handle:
        handle.write('lock')
    os.mkdir(os.path.join(s4_dir, 'old.xlsx'))
    group = ExperimentGroup(s4_dir, 'S4', MultiLayout())
    assert [os.path.basename(f) for f in group.prod_files] == ['S4_24h_prod.xlsx']
