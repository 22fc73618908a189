"""Tests for the session controller: resolution, scheduling and resume."""

import json

import pytest

from aztf_bridge.client.exceptions import (
    CompensationFailedError,
    DiscoveryError,
    EngineUnavailableError,
    InvalidTransitionError,
)
from aztf_bridge.session.controller import build_session
from aztf_bridge.session.models import ImportStatus, ResourceDescriptor
from aztf_bridge.session.state import ImportStateStore

from conftest import (
    RG_ID,
    STORAGE_ID,
    SUBNET_ID,
    UNKNOWN_ID,
    VM_ID,
    VNET_ID,
    FakeEngine,
    descriptors,
    rejected,
)


def statuses(controller):
    return {item.cloud_id: item.status for item in controller.session}


class TestBuildSession:
    def test_discovery_order_and_names(self):
        session = build_session(descriptors(RG_ID, VNET_ID, SUBNET_ID))
        assert [i.cloud_id for i in session] == [RG_ID, VNET_ID, SUBNET_ID]
        assert [i.target_name for i in session] == ["res-0", "res-1", "res-2"]
        assert all(i.status == ImportStatus.PENDING for i in session)

    def test_duplicate_resource_is_a_discovery_error(self):
        descs = descriptors(RG_ID) + descriptors(RG_ID.upper())
        with pytest.raises(DiscoveryError, match="Duplicate"):
            build_session(descs)

    def test_module_path_prefixes_addresses(self, make_controller):
        controller = make_controller(descriptors(RG_ID), module_path="net.inner")
        controller.auto_resolve()
        assert (
            controller.session.get(RG_ID).target_address
            == "module.net.module.inner.azurerm_resource_group.res-0"
        )


class TestAutoResolve:
    def test_recommendations_validate_and_unknown_kinds_skip(self, make_controller):
        controller = make_controller(descriptors(RG_ID, VM_ID, UNKNOWN_ID))
        controller.auto_resolve()

        rg = controller.session.get(RG_ID)
        assert rg.status == ImportStatus.VALIDATED
        assert rg.target_type == "azurerm_resource_group"
        assert rg.is_recommended
        assert controller.session.get(VM_ID).status == ImportStatus.SKIPPED
        assert controller.session.get(UNKNOWN_ID).status == ImportStatus.SKIPPED

    def test_fixed_type_wins_over_recommendation(self, make_controller):
        desc = ResourceDescriptor(
            cloud_id=VM_ID,
            display_name="vm1",
            target_name="vm",
            resource_type="azurerm_linux_virtual_machine",
        )
        controller = make_controller([desc])
        controller.auto_resolve()

        item = controller.session.get(VM_ID)
        assert item.status == ImportStatus.VALIDATED
        assert item.target_address == "azurerm_linux_virtual_machine.vm"
        assert not item.is_recommended

    def test_invalid_fixed_type_stays_pending(self, make_controller):
        desc = ResourceDescriptor(
            cloud_id=VM_ID, display_name="vm1", target_name="vm", resource_type="azurerm_nope"
        )
        controller = make_controller([desc])
        controller.auto_resolve()

        item = controller.session.get(VM_ID)
        assert item.status == ImportStatus.PENDING
        assert "azurerm_nope" in str(item.validation_error)


class TestExecute:
    @pytest.mark.asyncio
    async def test_end_to_end_non_interactive(self, make_controller, mapping_path):
        engine = FakeEngine()
        controller = make_controller(descriptors(RG_ID, VNET_ID, SUBNET_ID, VM_ID), engine=engine)

        outcome = await controller.run()

        assert outcome.counts == {"imported": 3, "skipped": 1, "errored": 0, "unresolved": 0}
        assert outcome.exit_code == 0
        assert engine.state == {
            "azurerm_resource_group.res-0": RG_ID,
            "azurerm_virtual_network.res-1": VNET_ID,
            "azurerm_subnet.res-2": SUBNET_ID,
        }
        assert outcome.mapping_file == mapping_path

        data = json.loads(mapping_path.read_text())
        assert data[RG_ID]["status"] == "imported"
        assert data[RG_ID]["resource_type"] == "azurerm_resource_group"
        assert data[VM_ID]["status"] == "skipped"
        assert data[VM_ID]["resource_type"] == ""

    @pytest.mark.asyncio
    async def test_versions_increase_by_one_per_transition(self, make_controller, mapping_path):
        controller = make_controller(descriptors(RG_ID))
        versions = []
        controller.subscribe(lambda event: versions.append(event.snapshot.version))

        await controller.run()

        # pending -> validated -> importing -> imported
        assert versions == [1, 2, 3]
        assert json.loads(mapping_path.read_text())[RG_ID]["version"] == 3

    @pytest.mark.asyncio
    async def test_listeners_see_every_transition(self, make_controller):
        controller = make_controller(descriptors(RG_ID))
        events = []
        unsubscribe = controller.subscribe(events.append)

        await controller.run()
        unsubscribe()

        assert [(e.old_status, e.new_status) for e in events] == [
            (ImportStatus.PENDING, ImportStatus.VALIDATED),
            (ImportStatus.VALIDATED, ImportStatus.IMPORTING),
            (ImportStatus.IMPORTING, ImportStatus.IMPORTED),
        ]
        assert events[-1].snapshot.target_address == "azurerm_resource_group.res-0"

    @pytest.mark.asyncio
    async def test_failure_stops_scheduling(self, make_controller):
        engine = FakeEngine(failures={VNET_ID: rejected(VNET_ID)})
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID, STORAGE_ID), engine=engine, parallelism=1
        )

        outcome = await controller.run()

        assert statuses(controller) == {
            RG_ID: ImportStatus.IMPORTED,
            VNET_ID: ImportStatus.ERRORED,
            SUBNET_ID: ImportStatus.PENDING,
            STORAGE_ID: ImportStatus.PENDING,
        }
        assert len(engine.import_calls) == 2
        assert controller.stopped
        assert outcome.exit_code == 1
        assert "type mismatch" in outcome.errored[0].import_error

    @pytest.mark.asyncio
    async def test_running_imports_finish_after_failure(self, make_controller):
        engine = FakeEngine(failures={RG_ID: rejected(RG_ID)}, delay=0.01)
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID, STORAGE_ID), engine=engine, parallelism=2
        )

        await controller.run()

        result = statuses(controller)
        assert result[RG_ID] == ImportStatus.ERRORED
        assert result[VNET_ID] == ImportStatus.IMPORTED
        assert ImportStatus.IMPORTING not in result.values()

    @pytest.mark.asyncio
    async def test_continue_on_error(self, make_controller):
        engine = FakeEngine(failures={VNET_ID: rejected(VNET_ID)})
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID, STORAGE_ID),
            engine=engine,
            parallelism=1,
            continue_on_error=True,
        )

        outcome = await controller.run()

        assert outcome.counts["imported"] == 3
        assert outcome.counts["errored"] == 1
        assert not controller.stopped
        assert all(item.is_terminal for item in controller.session)

    @pytest.mark.asyncio
    async def test_parallelism_is_respected(self, make_controller):
        engine = FakeEngine(delay=0.01)
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID, STORAGE_ID), engine=engine, parallelism=2
        )
        await controller.run()
        assert engine.max_running == 2

    @pytest.mark.asyncio
    async def test_engine_unavailable_is_fatal_even_when_continuing(
        self, make_controller, mapping_path
    ):
        engine = FakeEngine(failures={RG_ID: EngineUnavailableError("terraform binary not found")})
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID),
            engine=engine,
            parallelism=1,
            continue_on_error=True,
        )

        with pytest.raises(EngineUnavailableError):
            await controller.run()

        # mapping file is still finalized
        data = json.loads(mapping_path.read_text())
        assert data[RG_ID]["status"] == "errored"
        assert data[VNET_ID]["status"] == "pending"
        outcome = controller.outcome()
        assert outcome.fatal_error
        assert outcome.exit_code == 1

    @pytest.mark.asyncio
    async def test_timeout_marks_item_errored(self, make_controller):
        engine = FakeEngine(delay=1.0)
        controller = make_controller(descriptors(RG_ID), engine=engine, timeout=0.01)

        outcome = await controller.run()

        assert outcome.counts["errored"] == 1
        assert "timed out" in outcome.errored[0].import_error

    @pytest.mark.asyncio
    async def test_generate_mapping_only(self, make_controller, mapping_path):
        engine = FakeEngine()
        controller = make_controller(
            descriptors(RG_ID, VM_ID), engine=engine, generate_mapping_only=True
        )

        outcome = await controller.run()

        assert engine.import_calls == []
        assert outcome.exit_code == 0
        data = json.loads(mapping_path.read_text())
        assert data[RG_ID]["status"] == "validated"
        assert data[RG_ID]["target_address"] == "azurerm_resource_group.res-0"
        assert data[VM_ID]["status"] == "skipped"


class TestResume:
    @pytest.mark.asyncio
    async def test_imported_items_are_not_imported_again(self, make_controller, mapping_path):
        first = FakeEngine(failures={VNET_ID: rejected(VNET_ID)})
        controller = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID), engine=first, parallelism=1
        )
        await controller.run()

        store = ImportStateStore(mapping_path)
        loaded = store.load()
        second = FakeEngine()
        resumed = make_controller(
            descriptors(RG_ID, VNET_ID, SUBNET_ID), engine=second, loaded=loaded, store=store
        )
        outcome = await resumed.run()

        assert [call[2] for call in second.import_calls] == [VNET_ID, SUBNET_ID]
        assert outcome.counts["imported"] == 3
        assert json.loads(mapping_path.read_text())[RG_ID]["version"] == 3

    @pytest.mark.asyncio
    async def test_resume_keeps_saved_names(self, make_controller, mapping_path):
        mapping_path.write_text(
            json.dumps(
                {
                    VNET_ID: {
                        "resource_type": "azurerm_virtual_network",
                        "resource_name": "main",
                        "status": "validated",
                        "version": 2,
                    }
                }
            )
        )
        store = ImportStateStore(mapping_path)
        engine = FakeEngine()
        controller = make_controller(
            descriptors(VNET_ID), engine=engine, loaded=store.load(), store=store
        )

        await controller.run()

        assert engine.import_calls == [("azurerm_virtual_network.main", "azurerm_virtual_network", VNET_ID)]

    @pytest.mark.asyncio
    async def test_second_identical_run_is_a_no_op(self, make_controller, mapping_path):
        controller = make_controller(descriptors(RG_ID, VNET_ID))
        await controller.run()
        before = json.loads(mapping_path.read_text())

        store = ImportStateStore(mapping_path)
        engine = FakeEngine()
        again = make_controller(
            descriptors(RG_ID, VNET_ID), engine=engine, loaded=store.load(), store=store
        )
        await again.run()

        assert engine.import_calls == []
        assert json.loads(mapping_path.read_text()) == before

    @pytest.mark.asyncio
    async def test_resume_with_differently_cased_ids(self, make_controller, mapping_path):
        first = FakeEngine(failures={VNET_ID: rejected(VNET_ID)})
        await make_controller(descriptors(RG_ID, VNET_ID), engine=first).run()

        upper_rg = RG_ID.replace("rg1", "RG1")
        upper_vnet = VNET_ID.replace("vnet1", "VNET1")
        store = ImportStateStore(mapping_path)
        second = FakeEngine()
        resumed = make_controller(
            descriptors(upper_rg, upper_vnet), engine=second, loaded=store.load(), store=store
        )
        outcome = await resumed.run()

        assert [call[2] for call in second.import_calls] == [upper_vnet]
        assert outcome.counts["imported"] == 2
        data = json.loads(mapping_path.read_text())
        assert sorted(data) == sorted([RG_ID, VNET_ID])
        assert data[VNET_ID]["resource_id"] == VNET_ID
        assert data[VNET_ID]["status"] == "imported"

        reloaded = ImportStateStore(mapping_path).load()
        assert len(reloaded) == 2
        assert reloaded.get(upper_vnet).status == ImportStatus.IMPORTED


class TestEditing:
    @pytest.mark.asyncio
    async def test_confirm_valid_type(self, make_controller):
        controller = make_controller(descriptors(VM_ID))
        controller.mark_all_recommended()
        assert controller.session.get(VM_ID).status == ImportStatus.PENDING

        await controller.begin_edit(VM_ID)
        snapshot = controller.confirm_edit(VM_ID, "azurerm_linux_virtual_machine")

        assert snapshot.status == ImportStatus.VALIDATED
        assert snapshot.target_address == "azurerm_linux_virtual_machine.res-0"

    @pytest.mark.asyncio
    async def test_confirm_invalid_type_returns_to_pending(self, make_controller):
        controller = make_controller(descriptors(RG_ID))
        controller.mark_all_recommended()
        await controller.begin_edit(RG_ID)

        snapshot = controller.confirm_edit(RG_ID, "azurerm_bogus")

        assert snapshot.status == ImportStatus.PENDING
        assert "azurerm_bogus" in snapshot.validation_error

    @pytest.mark.asyncio
    async def test_re_entering_edit_clears_validation_error(self, make_controller):
        controller = make_controller(descriptors(VNET_ID))
        controller.mark_all_recommended()
        await controller.begin_edit(VNET_ID)
        controller.confirm_edit(VNET_ID, "azurerm_nope")

        snapshot = await controller.begin_edit(VNET_ID)

        assert snapshot.status == ImportStatus.EDITING
        assert snapshot.validation_error is None
        assert controller.session.get(VNET_ID).validation_error is None

    @pytest.mark.asyncio
    async def test_confirm_empty_input_skips(self, make_controller):
        controller = make_controller(descriptors(RG_ID))
        controller.mark_all_recommended()
        await controller.begin_edit(RG_ID)

        snapshot = controller.confirm_edit(RG_ID, "  ")

        assert snapshot.status == ImportStatus.SKIPPED
        assert snapshot.target_type == ""

    @pytest.mark.asyncio
    async def test_cancel_restores_previous_status(self, make_controller):
        controller = make_controller(descriptors(RG_ID))
        controller.mark_all_recommended()
        await controller.begin_edit(RG_ID)

        snapshot = controller.cancel_edit(RG_ID)

        assert snapshot.status == ImportStatus.RECOMMENDED
        assert snapshot.is_recommended

    def test_confirm_requires_editing(self, make_controller):
        controller = make_controller(descriptors(RG_ID))
        with pytest.raises(InvalidTransitionError):
            controller.confirm_edit(RG_ID, "azurerm_resource_group")

    @pytest.mark.asyncio
    async def test_re_edit_imported_item_removes_it_from_state(self, make_controller):
        engine = FakeEngine()
        controller = make_controller(descriptors(VNET_ID), engine=engine)
        await controller.run()
        assert "azurerm_virtual_network.res-0" in engine.state

        snapshot = await controller.begin_edit(VNET_ID)

        assert engine.remove_calls == ["azurerm_virtual_network.res-0"]
        assert engine.state == {}
        assert snapshot.status == ImportStatus.EDITING
        assert not snapshot.is_recommended

        # escape goes back to validated, not imported
        assert controller.cancel_edit(VNET_ID).status == ImportStatus.VALIDATED

    @pytest.mark.asyncio
    async def test_failed_state_removal_keeps_item_imported(self, make_controller):
        engine = FakeEngine(
            remove_failures={"azurerm_virtual_network.res-0": rejected(VNET_ID, "state locked")}
        )
        controller = make_controller(descriptors(VNET_ID), engine=engine)
        await controller.run()

        with pytest.raises(CompensationFailedError, match="state locked"):
            await controller.begin_edit(VNET_ID)

        item = controller.session.get(VNET_ID)
        assert item.status == ImportStatus.IMPORTED
        assert item.target_type == "azurerm_virtual_network"
        assert "state locked" in str(item.validation_error)

    @pytest.mark.asyncio
    async def test_skip_imported_item(self, make_controller):
        engine = FakeEngine()
        controller = make_controller(descriptors(RG_ID), engine=engine)
        await controller.run()

        snapshot = await controller.skip(RG_ID)

        assert snapshot.status == ImportStatus.SKIPPED
        assert engine.state == {}

    @pytest.mark.asyncio
    async def test_errored_item_can_be_retried_with_another_type(self, make_controller):
        engine = FakeEngine(failures={VM_ID: rejected(VM_ID)})
        desc = ResourceDescriptor(
            cloud_id=VM_ID,
            display_name="vm1",
            target_name="vm",
            resource_type="azurerm_windows_virtual_machine",
        )
        controller = make_controller([desc], engine=engine)
        await controller.run()
        assert controller.session.get(VM_ID).status == ImportStatus.ERRORED

        engine.failures.clear()
        await controller.begin_edit(VM_ID)
        controller.confirm_edit(VM_ID, "azurerm_linux_virtual_machine")
        await controller.execute()

        assert engine.state == {"azurerm_linux_virtual_machine.vm": VM_ID}


class TestInteractiveRun:
    @pytest.mark.asyncio
    async def test_frontend_rounds(self, make_controller):
        engine = FakeEngine()
        controller = make_controller(descriptors(RG_ID, VM_ID), engine=engine)
        rounds = []

        async def frontend(ctrl):
            rounds.append(len(rounds))
            if len(rounds) == 1:
                await ctrl.begin_edit(RG_ID)
                ctrl.confirm_edit(RG_ID, "")
                await ctrl.begin_edit(VM_ID)
                ctrl.confirm_edit(VM_ID, "azurerm_linux_virtual_machine")
                return True
            return False

        outcome = await controller.run(frontend)

        assert rounds == [0, 1]
        assert engine.import_calls == [
            ("azurerm_linux_virtual_machine.res-1", "azurerm_linux_virtual_machine", VM_ID)
        ]
        assert outcome.counts == {"imported": 1, "skipped": 1, "errored": 0, "unresolved": 0}

    @pytest.mark.asyncio
    async def test_commit_imports_recommended_types(self, make_controller):
        engine = FakeEngine()
        controller = make_controller(descriptors(RG_ID, VNET_ID), engine=engine)
        rounds = []

        async def frontend(ctrl):
            rounds.append(len(rounds))
            return len(rounds) == 1

        outcome = await controller.run(frontend)

        assert [call[1] for call in engine.import_calls] == [
            "azurerm_resource_group",
            "azurerm_virtual_network",
        ]
        assert outcome.counts == {"imported": 2, "skipped": 0, "errored": 0, "unresolved": 0}
        assert controller.session.get(RG_ID).is_recommended
        assert controller.session.get(VNET_ID).is_recommended

    @pytest.mark.asyncio
    async def test_quit_leaves_items_unresolved(self, make_controller, mapping_path):
        engine = FakeEngine()
        controller = make_controller(descriptors(RG_ID), engine=engine)

        async def frontend(ctrl):
            return False

        outcome = await controller.run(frontend)

        assert engine.import_calls == []
        assert outcome.counts["unresolved"] == 1
        assert json.loads(mapping_path.read_text())[RG_ID]["status"] == "recommended"


class TestRequestStop:
    @pytest.mark.asyncio
    async def test_stop_lets_running_imports_finish(self, make_controller):
        engine = FakeEngine(delay=0.01)
        controller = make_controller(descriptors(RG_ID, VNET_ID, SUBNET_ID), engine=engine, parallelism=1)

        def stop_after_first_import(event):
            if event.new_status == ImportStatus.IMPORTING:
                controller.request_stop()

        controller.subscribe(stop_after_first_import)
        await controller.run()

        assert statuses(controller) == {
            RG_ID: ImportStatus.IMPORTED,
            VNET_ID: ImportStatus.PENDING,
            SUBNET_ID: ImportStatus.PENDING,
        }
        assert controller.stopped
